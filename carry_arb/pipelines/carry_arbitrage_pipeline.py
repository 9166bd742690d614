"""
Cash-and-Carry Paper-Trading Pipeline - main entry point.

Orchestrates all stages of the spot/perp basis bot:

    [1] INIT     - Load config, setup logger
    [2] MARKETS  - Load spot + swap market metadata via ccxt
    [3] ENGINE   - Build the decision engine, paper ledger and trade journal
    [4] FEEDS    - Funding-rate refresh + ticker feed (polling or stream)
    [5] REPORT   - Journal summary / CSV export on shutdown

Startup failures (bad config, markets unavailable) exit with code 1.

Usage::

    python -m carry_arb.pipelines.carry_arbitrage_pipeline --config config/carry_arb_config.json
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

from carry_arb.core.config import CarryArbConfig, ConfigError, load_config
from carry_arb.data.trade_journal import TradeJournal
from carry_arb.exchanges.base import MarketFeed
from carry_arb.exchanges.binance_websocket import BinanceBookTickerStream
from carry_arb.exchanges.ccxt_markets import CcxtMarkets, MarketInitError
from carry_arb.exchanges.polling_feed import FundingRatePoller, TickerPollingFeed
from carry_arb.strategies.cash_and_carry import CashAndCarryEngine
from carry_arb.utils.logger import log_event, setup_logger

# Project root (two levels up: carry_arb/pipelines/ → repo root)
ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_PATH = ROOT / "config" / "carry_arb_config.json"


# ═══════════════════════════════════════════════════════════════════════════
# STAGE 1 - INIT
# ═══════════════════════════════════════════════════════════════════════════

def init(config_path: Path, mode: Optional[str] = None) -> tuple[CarryArbConfig, logging.Logger]:
    """
    Stage 1: load configuration and setup the logger.

    Raises
    ------
    ConfigError
        If the file is missing or invalid (logged to a console logger first).
    """
    try:
        config = load_config(config_path)
    except ConfigError as exc:
        fallback = setup_logger("carry_arb")
        log_event(fallback, "config_loaded", level=logging.ERROR, ok=False, path=config_path, error=exc)
        raise

    if mode is not None and mode != config.mode:
        config = replace(config, mode=mode)

    log_path = None
    if config.log_path:
        log_path = ROOT / config.log_path / "carry_arbitrage_pipeline.log"
    log_level = getattr(logging, config.log_level.upper(), logging.INFO)
    logger = setup_logger("carry_arb", log_path, level=log_level)

    logger.info("=" * 60)
    logger.info("Cash-and-Carry Paper-Trading Pipeline starting")
    logger.info("=" * 60)
    logger.info("Stage 1 - INIT")
    log_event(logger, "config_loaded", ok=True, path=config_path)
    logger.info(
        f"Strategy: {config.strategy_name} | Exchange: {config.exchange} | "
        f"Spot: {config.spot_symbol} | Futures: {config.futures_symbol} | Mode: {config.mode}"
    )
    logger.info(
        f"Notional per trade: {config.trade_amount_quote} {config.quote_currency} | "
        f"Open > {config.thresholds.open_threshold_percent}% | "
        f"Close < {config.thresholds.close_threshold_percent}% | "
        f"Funding > {config.thresholds.funding_rate_threshold_percent}%"
    )
    return config, logger


# ═══════════════════════════════════════════════════════════════════════════
# STAGE 2 - MARKETS
# ═══════════════════════════════════════════════════════════════════════════

def load_markets(config: CarryArbConfig, logger: logging.Logger) -> CcxtMarkets:
    """Stage 2: instantiate the spot/swap ccxt clients and load their markets."""
    logger.info("Stage 2 - MARKETS")
    try:
        markets = CcxtMarkets(
            exchange_id=config.exchange,
            spot_symbol=config.spot_symbol,
            futures_symbol=config.futures_symbol,
            timeout_ms=config.feeds.request_timeout_ms,
            logger=logger,
        )
        markets.load()
    except MarketInitError as exc:
        log_event(logger, "markets_loaded", level=logging.ERROR, ok=False, error=exc)
        raise
    log_event(
        logger, "markets_loaded",
        ok=True, spot=markets.spot_symbol, futures=markets.futures_symbol,
    )
    return markets


# ═══════════════════════════════════════════════════════════════════════════
# STAGE 3 - ENGINE
# ═══════════════════════════════════════════════════════════════════════════

def build_engine(config: CarryArbConfig, logger: logging.Logger) -> CashAndCarryEngine:
    logger.info("Stage 3 - ENGINE")
    return CashAndCarryEngine(config=config, logger=logger, journal=TradeJournal())


# ═══════════════════════════════════════════════════════════════════════════
# STAGE 4 - FEEDS
# ═══════════════════════════════════════════════════════════════════════════

def build_feeds(
    config: CarryArbConfig,
    markets: CcxtMarkets,
    engine: CashAndCarryEngine,
    logger: logging.Logger,
) -> list[MarketFeed]:
    """Funding poller plus the ticker feed selected by ``config.mode``."""
    feeds: list[MarketFeed] = [
        FundingRatePoller(
            markets,
            engine.on_funding_rate,
            refresh_secs=config.feeds.funding_refresh_secs,
            logger=logger,
        )
    ]
    if config.mode == "stream":
        if config.exchange != "binance":
            raise ConfigError("Stream mode is only available for the binance exchange")
        feeds.append(
            BinanceBookTickerStream(
                spot_ticker=markets.spot_market_id,
                futures_ticker=markets.futures_market_id,
                on_spot_ticker=engine.on_spot_ticker,
                on_futures_ticker=engine.on_futures_ticker,
                reconnect_delay_secs=config.feeds.reconnect_delay_secs,
                logger=logger,
            )
        )
    else:
        feeds.append(
            TickerPollingFeed(
                markets,
                engine.on_tickers,
                interval_ms=config.feeds.polling_interval_ms,
                logger=logger,
            )
        )
    return feeds


def run_feeds(feeds: list[MarketFeed], logger: logging.Logger) -> None:
    """Stage 4: run every feed on one event loop until interrupted."""
    logger.info("Stage 4 - FEEDS")

    async def main():
        await asyncio.gather(*(feed.run_forever() for feed in feeds))

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        for feed in feeds:
            feed.stop()
        logger.info("Feeds stopped by user.")


# ═══════════════════════════════════════════════════════════════════════════
# STAGE 5 - REPORT
# ═══════════════════════════════════════════════════════════════════════════

def report(config: CarryArbConfig, engine: CashAndCarryEngine, logger: logging.Logger) -> None:
    logger.info("Stage 5 - REPORT")
    log_event(logger, "portfolio", reason="shutdown", state=engine.state, balances=engine.portfolio)

    journal = engine.journal
    if journal is None:
        return
    summary = journal.summary()
    logger.info(
        "Session summary: " + " | ".join(f"{k}: {v}" for k, v in summary.items())
    )
    if config.journal_path and len(journal):
        path = journal.save_csv(ROOT / config.journal_path)
        log_event(logger, "journal_saved", path=path, trades=len(journal))


# ═══════════════════════════════════════════════════════════════════════════
# MAIN ENTRY POINT
# ═══════════════════════════════════════════════════════════════════════════

def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Cash-and-carry basis paper-trading bot")
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH)
    parser.add_argument("--mode", choices=["polling", "stream"], default=None)
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    try:
        config, logger = init(args.config, args.mode)
    except ConfigError:
        return 1

    try:
        markets = load_markets(config, logger)
    except MarketInitError:
        logger.error("Pipeline aborted: market data unavailable.")
        return 1

    engine = build_engine(config, logger)
    try:
        feeds = build_feeds(config, markets, engine, logger)
    except ConfigError as exc:
        logger.error(f"Pipeline aborted: {exc}")
        return 1

    try:
        run_feeds(feeds, logger)
    finally:
        report(config, engine, logger)
    return 0


if __name__ == "__main__":
    sys.exit(main())
