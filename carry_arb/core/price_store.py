"""
Latest-value store for spot/futures top-of-book and the funding rate.

Each update replaces its field wholesale under a lock, so a reader calling
:meth:`PriceStore.snapshot` never sees a half-written quote.  Values that are
not usable (non-finite or non-positive prices, non-finite funding rate) reset
the field to unknown (``None``) instead of being stored.
"""

from __future__ import annotations

import threading
from decimal import Decimal
from typing import Optional

from carry_arb.core.models import MarketSnapshot, PriceQuote
from carry_arb.helpers.financial_helper import is_valid_price, to_decimal


def _coerce(value) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return to_decimal(value)
    except (TypeError, ValueError):
        return None


class PriceStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._spot: Optional[PriceQuote] = None
        self._futures: Optional[PriceQuote] = None
        self._funding_rate_percent: Optional[Decimal] = None

    # ------------------------------------------------------------------
    # Writers
    # ------------------------------------------------------------------

    def update_spot(self, bid, ask) -> bool:
        """Overwrite the spot quote. Returns ``False`` if it was rejected."""
        quote = self._make_quote(bid, ask)
        with self._lock:
            self._spot = quote
        return quote is not None

    def update_futures(self, bid, ask) -> bool:
        """Overwrite the futures quote. Returns ``False`` if it was rejected."""
        quote = self._make_quote(bid, ask)
        with self._lock:
            self._futures = quote
        return quote is not None

    def update_funding_rate(self, rate_percent) -> bool:
        """Overwrite the funding rate (percent). Negative rates are valid."""
        rate = _coerce(rate_percent)
        if rate is not None and not rate.is_finite():
            rate = None
        with self._lock:
            self._funding_rate_percent = rate
        return rate is not None

    @staticmethod
    def _make_quote(bid, ask) -> Optional[PriceQuote]:
        bid_d, ask_d = _coerce(bid), _coerce(ask)
        if not (is_valid_price(bid_d) and is_valid_price(ask_d)):
            return None
        return PriceQuote(bid=bid_d, ask=ask_d)

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    @property
    def spot(self) -> Optional[PriceQuote]:
        with self._lock:
            return self._spot

    @property
    def futures(self) -> Optional[PriceQuote]:
        with self._lock:
            return self._futures

    @property
    def funding_rate_percent(self) -> Optional[Decimal]:
        with self._lock:
            return self._funding_rate_percent

    def snapshot(self) -> MarketSnapshot:
        with self._lock:
            return MarketSnapshot(
                spot=self._spot,
                futures=self._futures,
                funding_rate_percent=self._funding_rate_percent,
            )
