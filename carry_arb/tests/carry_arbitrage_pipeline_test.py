"""Tests for the pipeline stages (network and logging setup are mocked)."""

import logging
from unittest.mock import Mock, patch

import pytest

from carry_arb.core.config import ConfigError
from carry_arb.exchanges.binance_websocket import BinanceBookTickerStream
from carry_arb.exchanges.ccxt_markets import MarketInitError
from carry_arb.exchanges.polling_feed import FundingRatePoller, TickerPollingFeed
from carry_arb.pipelines import carry_arbitrage_pipeline as pipeline
from carry_arb.strategies.cash_and_carry import CashAndCarryEngine

TEST_LOGGER = logging.getLogger("carry_arb.test.pipeline")


@pytest.fixture(autouse=True)
def quiet_logger():
    with patch.object(pipeline, "setup_logger", return_value=TEST_LOGGER):
        yield


def mock_markets():
    markets = Mock()
    markets.spot_market_id = "BTCUSDT"
    markets.futures_market_id = "BTCUSDT"
    return markets


class TestStartup:
    """Startup failures terminate with exit code 1."""

    def test_bad_config_exits(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{ nope")
        assert pipeline.main(["--config", str(bad)]) == 1

    def test_market_init_failure_exits(self, config_file, raw_config_factory):
        path = config_file(raw_config_factory())
        with patch.object(pipeline, "load_markets", side_effect=MarketInitError("down")):
            assert pipeline.main(["--config", str(path)]) == 1

    def test_stream_mode_needs_binance(self, config_file, raw_config_factory):
        path = config_file(raw_config_factory(exchange="okx"))
        with patch.object(pipeline, "load_markets", return_value=mock_markets()):
            assert pipeline.main(["--config", str(path), "--mode", "stream"]) == 1

    def test_init_applies_mode_override(self, config_file, raw_config_factory):
        path = config_file(raw_config_factory())
        config, logger = pipeline.init(path, "stream")
        assert config.mode == "stream"
        assert logger is TEST_LOGGER


class TestBuildFeeds:
    """The configured mode selects the ticker feed."""

    def test_polling_mode(self, config):
        engine = CashAndCarryEngine(config, logger=TEST_LOGGER)
        feeds = pipeline.build_feeds(config, mock_markets(), engine, TEST_LOGGER)

        assert [type(f) for f in feeds] == [FundingRatePoller, TickerPollingFeed]
        assert feeds[1].interval_ms == config.feeds.polling_interval_ms

    def test_stream_mode(self, config_factory):
        config = config_factory(mode="stream")
        engine = CashAndCarryEngine(config, logger=TEST_LOGGER)
        feeds = pipeline.build_feeds(config, mock_markets(), engine, TEST_LOGGER)

        assert isinstance(feeds[1], BinanceBookTickerStream)
        assert feeds[1].futures_ticker == "BTCUSDT"

    def test_stream_mode_rejects_other_exchanges(self, config_factory):
        config = config_factory(mode="stream", exchange="bybit")
        engine = CashAndCarryEngine(config, logger=TEST_LOGGER)
        with pytest.raises(ConfigError):
            pipeline.build_feeds(config, mock_markets(), engine, TEST_LOGGER)


class TestReport:
    """Shutdown report saves the journal when configured."""

    def test_journal_saved(self, tmp_path, config_factory):
        config = config_factory(data_paths={"journal_path": str(tmp_path / "trades")})
        engine = pipeline.build_engine(config, TEST_LOGGER)
        engine.on_funding_rate(0.0005)
        engine.on_spot_ticker(99.9, 100)
        engine.on_futures_ticker(101, 101.1)
        engine.on_futures_ticker(100.05, 100.15)

        pipeline.report(config, engine, TEST_LOGGER)

        assert len(list((tmp_path / "trades").glob("carry_trades_*.csv"))) == 1

    def test_nothing_saved_without_trades(self, tmp_path, config_factory):
        config = config_factory(data_paths={"journal_path": str(tmp_path / "trades")})
        engine = pipeline.build_engine(config, TEST_LOGGER)

        pipeline.report(config, engine, TEST_LOGGER)

        assert not (tmp_path / "trades").exists()

    def test_main_runs_feeds_and_reports(self, config_file, raw_config_factory):
        path = config_file(raw_config_factory())
        with patch.object(pipeline, "load_markets", return_value=mock_markets()), \
                patch.object(pipeline, "run_feeds") as run_feeds, \
                patch.object(pipeline, "report") as report:
            assert pipeline.main(["--config", str(path)]) == 0

        run_feeds.assert_called_once()
        report.assert_called_once()
