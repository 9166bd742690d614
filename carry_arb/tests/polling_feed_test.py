"""Tests for the REST polling feeds (ccxt calls are mocked)."""

import asyncio
import logging
from decimal import Decimal
from unittest.mock import Mock

import ccxt

from carry_arb.exchanges.polling_feed import FundingRatePoller, TickerPollingFeed
from carry_arb.strategies.cash_and_carry import CashAndCarryEngine

logger = logging.getLogger("carry_arb.test.feeds")


def mock_markets(spot=None, futures=None, funding=0.0001):
    markets = Mock()
    markets.fetch_spot_ticker.return_value = spot if spot is not None else {"bid": 99.9, "ask": 100.0}
    markets.fetch_futures_ticker.return_value = futures if futures is not None else {"bid": 101.0, "ask": 101.1}
    markets.fetch_funding_rate.return_value = funding
    return markets


class TestTickerPollingFeed:
    """One polling round forwards both quotes together or nothing."""

    def test_poll_once_delivers_the_pair(self):
        on_tickers = Mock()
        feed = TickerPollingFeed(mock_markets(), on_tickers, logger=logger)

        assert asyncio.run(feed.poll_once()) is True

        on_tickers.assert_called_once_with(99.9, 100.0, 101.0, 101.1)

    def test_fetch_error_is_isolated(self, caplog):
        markets = mock_markets()
        markets.fetch_futures_ticker.side_effect = ccxt.NetworkError("timeout")
        on_tickers = Mock()
        feed = TickerPollingFeed(markets, on_tickers, logger=logger)

        with caplog.at_level(logging.ERROR, logger="carry_arb.test.feeds"):
            assert asyncio.run(feed.poll_once()) is False

        on_tickers.assert_not_called()
        assert "Ticker poll failed" in caplog.text

    def test_incomplete_ticker_skips_round(self):
        markets = mock_markets(futures={"bid": None, "ask": 101.1})
        on_tickers = Mock()
        feed = TickerPollingFeed(markets, on_tickers, logger=logger)

        assert asyncio.run(feed.poll_once()) is False
        on_tickers.assert_not_called()

    def test_run_forever_keeps_polling_after_errors_until_stopped(self):
        markets = mock_markets()
        markets.fetch_spot_ticker.side_effect = [
            ccxt.NetworkError("boom"),
            {"bid": 99.9, "ask": 100.0},
        ]
        on_tickers = Mock()
        feed = TickerPollingFeed(markets, on_tickers, interval_ms=1, logger=logger)
        on_tickers.side_effect = lambda *quotes: feed.stop()

        asyncio.run(asyncio.wait_for(feed.run_forever(), timeout=5))

        assert markets.fetch_spot_ticker.call_count == 2
        on_tickers.assert_called_once()

    def test_stop_before_start(self):
        markets = mock_markets()
        feed = TickerPollingFeed(markets, Mock(), interval_ms=1, logger=logger)
        feed.stop()

        asyncio.run(asyncio.wait_for(feed.run_forever(), timeout=5))

        markets.fetch_spot_ticker.assert_not_called()


class TestPollingIntoEngine:
    """Each round is evaluated on the spot/futures pair fetched in that round."""

    def make_engine(self, config):
        engine = CashAndCarryEngine(config, logger=logger)
        engine.on_funding_rate(0.0005)           # 0.05%
        return engine

    def test_no_trade_on_quotes_from_different_rounds(self, config):
        engine = self.make_engine(config)
        markets = Mock()
        markets.fetch_spot_ticker.side_effect = [
            {"bid": 99.9, "ask": 100.0},
            {"bid": 98.9, "ask": 99.0},
        ]
        markets.fetch_futures_ticker.side_effect = [
            {"bid": 100.2, "ask": 100.3},        # 0.2% basis
            {"bid": 99.198, "ask": 99.3},        # still 0.2% basis
        ]
        feed = TickerPollingFeed(markets, engine.on_tickers, logger=logger)

        assert asyncio.run(feed.poll_once()) is True
        assert asyncio.run(feed.poll_once()) is True

        # new spot ask against the old futures bid would read as 1.21%
        assert engine.position is None
        assert engine.portfolio["USDT"] == Decimal("10000")

    def test_opens_at_prices_from_one_round(self, config):
        engine = self.make_engine(config)
        markets = mock_markets(
            spot={"bid": 99.9, "ask": 100.0},
            futures={"bid": 101.0, "ask": 101.1},
        )
        feed = TickerPollingFeed(markets, engine.on_tickers, logger=logger)

        asyncio.run(feed.poll_once())

        assert engine.position.entry_spot_price == Decimal("100.0")
        assert engine.position.entry_futures_price == Decimal("101.0")

class TestFundingRatePoller:
    """Funding refresh forwards the fraction and survives errors."""

    def test_refresh_once(self):
        on_rate = Mock()
        poller = FundingRatePoller(mock_markets(funding=0.00025), on_rate, logger=logger)

        assert asyncio.run(poller.refresh_once()) is True
        on_rate.assert_called_once_with(0.00025)

    def test_refresh_error_is_isolated(self):
        markets = mock_markets()
        markets.fetch_funding_rate.side_effect = ccxt.ExchangeNotAvailable("maintenance")
        on_rate = Mock()
        poller = FundingRatePoller(markets, on_rate, logger=logger)

        assert asyncio.run(poller.refresh_once()) is False
        on_rate.assert_not_called()

    def test_fetches_immediately_on_start(self):
        markets = mock_markets()
        on_rate = Mock()
        poller = FundingRatePoller(markets, on_rate, refresh_secs=3600, logger=logger)
        on_rate.side_effect = lambda rate: poller.stop()

        asyncio.run(asyncio.wait_for(poller.run_forever(), timeout=5))

        on_rate.assert_called_once_with(0.0001)
