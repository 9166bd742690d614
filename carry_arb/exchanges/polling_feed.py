"""
REST polling feeds built on :class:`CcxtMarkets`.

``TickerPollingFeed`` fetches the spot and futures tickers concurrently every
``interval_ms`` and forwards both top-of-book quotes to the engine in one
call, so every evaluation sees a spot/futures pair from the same round.
``FundingRatePoller`` refreshes the funding rate immediately and then every
``refresh_secs`` (hourly by default).

Errors never escape a feed: a failed round is logged and the loop simply waits
for the next one, leaving the engine with its last known values.

Usage::

    markets = CcxtMarkets("binance", "BTC/USDT", "BTC/USDT:USDT")
    markets.load()
    feed = TickerPollingFeed(markets, engine.on_tickers)
    asyncio.run(feed.run_forever())
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from carry_arb.exchanges.base import FundingRateCallback, MarketFeed, TickerPairCallback
from carry_arb.exchanges.ccxt_markets import CcxtMarkets


class _PeriodicFeed(MarketFeed):
    """Shared stop handling: sleeps wake up early when :meth:`stop` is called."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self._stop_event: asyncio.Event | None = None
        self._stopped = False

    def stop(self) -> None:
        self._stopped = True
        if self._stop_event:
            self._stop_event.set()

    def _should_run(self) -> bool:
        return not self._stopped

    async def _sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass


class TickerPollingFeed(_PeriodicFeed):
    def __init__(
        self,
        markets: CcxtMarkets,
        on_tickers: TickerPairCallback,
        interval_ms: int = 3000,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(logger)
        self.markets = markets
        self.on_tickers = on_tickers
        self.interval_ms = interval_ms

    async def run_forever(self) -> None:
        self._stop_event = asyncio.Event()
        if self._stopped:
            self._stop_event.set()
        self.logger.info(f"Polling tickers every {self.interval_ms}ms.")
        while self._should_run():
            await self.poll_once()
            await self._sleep(self.interval_ms / 1000)
        self.logger.info("Ticker polling stopped.")

    async def poll_once(self) -> bool:
        """Run one polling round. Returns ``True`` if both quotes were delivered."""
        try:
            spot, futures = await asyncio.gather(
                asyncio.to_thread(self.markets.fetch_spot_ticker),
                asyncio.to_thread(self.markets.fetch_futures_ticker),
            )
        except Exception as exc:
            self.logger.error(f"Ticker poll failed: {exc}")
            return False

        if not _has_top_of_book(spot) or not _has_top_of_book(futures):
            self.logger.warning("Incomplete spot/futures tickers this round, skipping.")
            return False

        self.on_tickers(spot["bid"], spot["ask"], futures["bid"], futures["ask"])
        return True


class FundingRatePoller(_PeriodicFeed):
    def __init__(
        self,
        markets: CcxtMarkets,
        on_funding_rate: FundingRateCallback,
        refresh_secs: int = 3600,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(logger)
        self.markets = markets
        self.on_funding_rate = on_funding_rate
        self.refresh_secs = refresh_secs

    async def run_forever(self) -> None:
        self._stop_event = asyncio.Event()
        if self._stopped:
            self._stop_event.set()
        self.logger.info(f"Refreshing funding rate every {self.refresh_secs}s.")
        while self._should_run():
            await self.refresh_once()
            await self._sleep(self.refresh_secs)
        self.logger.info("Funding rate refresh stopped.")

    async def refresh_once(self) -> bool:
        try:
            rate = await asyncio.to_thread(self.markets.fetch_funding_rate)
        except Exception as exc:
            self.logger.error(f"Funding rate fetch failed: {exc}")
            return False
        self.on_funding_rate(rate)
        return True


def _has_top_of_book(ticker: Optional[dict]) -> bool:
    return bool(ticker) and ticker.get("bid") is not None and ticker.get("ask") is not None
