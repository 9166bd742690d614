"""
Spot + perpetual-swap market access through ccxt.

One exchange id is instantiated twice: a spot client and a client whose
``defaultType`` is ``swap``.  Tickers for each venue are read from its own
client and the funding rate from the swap client.

All calls are blocking REST requests; async feeds run them through
``asyncio.to_thread``.
"""

from __future__ import annotations

import logging
from typing import Optional

import ccxt


class MarketInitError(Exception):
    """Raised when market metadata cannot be loaded or a symbol is unknown."""


class CcxtMarkets:
    def __init__(
        self,
        exchange_id: str,
        spot_symbol: str,
        futures_symbol: str,
        timeout_ms: int = 20000,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.exchange_id = exchange_id
        self.spot_symbol = spot_symbol
        self.futures_symbol = futures_symbol
        self.logger = logger or logging.getLogger(__name__)
        self.spot_market_id: Optional[str] = None
        self.futures_market_id: Optional[str] = None

        exchange_cls = getattr(ccxt, exchange_id, None)
        if exchange_cls is None:
            raise MarketInitError(f"Unknown ccxt exchange id: {exchange_id!r}")

        self.spot_exchange = exchange_cls({
            "timeout": timeout_ms,
            "enableRateLimit": True,
        })
        self.futures_exchange = exchange_cls({
            "timeout": timeout_ms,
            "enableRateLimit": True,
            "options": {"defaultType": "swap"},
        })

    def load(self) -> None:
        """Load both market tables and resolve the configured symbols."""
        try:
            self.spot_exchange.load_markets()
            self.futures_exchange.load_markets()
            spot_market = self.spot_exchange.market(self.spot_symbol)
            futures_market = self.futures_exchange.market(self.futures_symbol)
        except ccxt.BaseError as exc:
            raise MarketInitError(
                f"Failed to load {self.exchange_id} markets: {exc}"
            ) from exc

        if not spot_market.get("spot", True):
            raise MarketInitError(f"{self.spot_symbol} is not a spot market")
        if not (futures_market.get("swap") or futures_market.get("future")):
            raise MarketInitError(f"{self.futures_symbol} is not a swap/futures market")

        # Normalise to the unified symbols ccxt resolved; raw ids feed the streams.
        self.spot_symbol = spot_market["symbol"]
        self.futures_symbol = futures_market["symbol"]
        self.spot_market_id = spot_market.get("id")
        self.futures_market_id = futures_market.get("id")
        self.logger.debug(
            f"{self.exchange_id} markets loaded: spot={self.spot_symbol}, "
            f"futures={self.futures_symbol}"
        )

    def fetch_spot_ticker(self) -> dict:
        return self.spot_exchange.fetch_ticker(self.spot_symbol)

    def fetch_futures_ticker(self) -> dict:
        return self.futures_exchange.fetch_ticker(self.futures_symbol)

    def fetch_funding_rate(self) -> float:
        """Current funding rate of the swap as an exchange fraction."""
        data = self.futures_exchange.fetch_funding_rate(self.futures_symbol)
        rate = data.get("fundingRate") if data else None
        if rate is None:
            raise ValueError(f"No funding rate returned for {self.futures_symbol}")
        return float(rate)
