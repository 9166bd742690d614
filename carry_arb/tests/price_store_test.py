"""Tests for the latest-value price/rate store."""

from decimal import Decimal

import pytest

from carry_arb.core.models import PriceQuote
from carry_arb.core.price_store import PriceStore


class TestUpdates:
    """Test that updates overwrite wholesale."""

    def test_initially_unknown(self):
        store = PriceStore()
        snapshot = store.snapshot()
        assert snapshot.spot is None
        assert snapshot.futures is None
        assert snapshot.funding_rate_percent is None

    def test_spot_and_futures_overwrite(self):
        store = PriceStore()
        assert store.update_spot(99.9, 100) is True
        assert store.update_futures("101", "101.1") is True
        store.update_spot(100.5, 100.6)

        assert store.spot == PriceQuote(bid=Decimal("100.5"), ask=Decimal("100.6"))
        assert store.futures == PriceQuote(bid=Decimal("101"), ask=Decimal("101.1"))

    def test_funding_rate_accepts_negative(self):
        store = PriceStore()
        assert store.update_funding_rate(Decimal("-0.01")) is True
        assert store.funding_rate_percent == Decimal("-0.01")

    def test_snapshot_is_independent_of_later_updates(self):
        store = PriceStore()
        store.update_spot(1, 2)
        snapshot = store.snapshot()
        store.update_spot(3, 4)
        assert snapshot.spot == PriceQuote(bid=Decimal("1"), ask=Decimal("2"))


class TestValidation:
    """Invalid values make the field unknown instead of being stored."""

    @pytest.mark.parametrize("bid, ask", [
        (float("nan"), 100),
        (100, float("inf")),
        (0, 100),
        (100, -1),
        (None, 100),
        ("not-a-price", 100),
    ])
    def test_invalid_spot_quote_becomes_unknown(self, bid, ask):
        store = PriceStore()
        store.update_spot(99, 100)

        assert store.update_spot(bid, ask) is False
        assert store.spot is None

    def test_invalid_futures_quote_becomes_unknown(self):
        store = PriceStore()
        store.update_futures(101, 102)
        assert store.update_futures(101, float("nan")) is False
        assert store.futures is None

    def test_crossed_book_is_accepted(self):
        store = PriceStore()
        assert store.update_spot(101, 100) is True

    def test_non_finite_funding_rate_becomes_unknown(self):
        store = PriceStore()
        store.update_funding_rate(Decimal("0.01"))
        assert store.update_funding_rate(float("nan")) is False
        assert store.funding_rate_percent is None
