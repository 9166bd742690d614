"""
Configuration loading for the cash-and-carry paper-trading bot.

The configuration is a JSON file with nested sections::

    {
        "strategy_name": "cash_and_carry",
        "exchange": "binance",
        "mode": "polling",
        "symbols": {"spot": "BTC/USDT", "futures": "BTC/USDT:USDT"},
        "fees": {"spot_taker": 0.001, "futures_taker": 0.0005},
        "parameters": {
            "open_threshold_percent": 0.1,
            "close_threshold_percent": 0.02,
            "funding_rate_threshold_percent": 0.005,
            "fee_aware_open": false
        },
        "paper_trading": {
            "trade_amount_quote": 1000,
            "initial_balance": {"USDT": 10000}
        },
        "feeds": {"polling_interval_ms": 3000, "funding_refresh_secs": 3600},
        "logging": {"show_price_updates": false, "log_level": "INFO"},
        "data_paths": {"log_path": "logs", "journal_path": null}
    }

Every numeric value is converted to ``Decimal`` so the ledger arithmetic never
touches binary floats.  Anything malformed raises :class:`ConfigError`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

from carry_arb.helpers.financial_helper import to_decimal

VALID_MODES = ("polling", "stream")


class ConfigError(Exception):
    """Raised when the configuration file is missing, malformed or invalid."""


@dataclass(frozen=True)
class FeeConfig:
    spot_taker: Decimal
    futures_taker: Decimal


@dataclass(frozen=True)
class ThresholdConfig:
    open_threshold_percent: Decimal
    close_threshold_percent: Decimal
    funding_rate_threshold_percent: Decimal
    fee_aware_open: bool = False


@dataclass(frozen=True)
class FeedConfig:
    polling_interval_ms: int = 3000
    funding_refresh_secs: int = 3600
    reconnect_delay_secs: int = 5
    request_timeout_ms: int = 20000


@dataclass(frozen=True)
class CarryArbConfig:
    exchange: str
    spot_symbol: str
    futures_symbol: str
    fees: FeeConfig
    thresholds: ThresholdConfig
    trade_amount_quote: Decimal
    initial_balance: dict[str, Decimal]
    strategy_name: str = "cash_and_carry"
    mode: str = "polling"
    feeds: FeedConfig = field(default_factory=FeedConfig)
    show_price_updates: bool = False
    log_level: str = "INFO"
    log_path: Optional[str] = "logs"
    journal_path: Optional[str] = None

    @property
    def base_currency(self) -> str:
        return self.spot_symbol.split("/")[0]

    @property
    def quote_currency(self) -> str:
        return self.spot_symbol.split("/")[1].split(":")[0]

    @classmethod
    def from_dict(cls, raw: dict) -> "CarryArbConfig":
        """Build a validated config from the parsed JSON document."""
        if not isinstance(raw, dict):
            raise ConfigError("Configuration root must be a JSON object")

        symbols = _section(raw, "symbols")
        fees_raw = _section(raw, "fees")
        params = _section(raw, "parameters")
        paper = _section(raw, "paper_trading")
        feeds_raw = raw.get("feeds", {}) or {}
        logging_raw = raw.get("logging", {}) or {}
        paths = raw.get("data_paths", {}) or {}

        spot_symbol = _require(symbols, "spot", "symbols")
        futures_symbol = _require(symbols, "futures", "symbols")
        base, sep, quote = str(spot_symbol).partition("/")
        if not sep or not base or not quote:
            raise ConfigError(
                f"symbols.spot must look like BASE/QUOTE, got {spot_symbol!r}"
            )

        fees = FeeConfig(
            spot_taker=_decimal(fees_raw, "spot_taker", "fees"),
            futures_taker=_decimal(fees_raw, "futures_taker", "fees"),
        )
        if fees.spot_taker < 0 or fees.futures_taker < 0:
            raise ConfigError("Fee rates must be non-negative fractions")

        thresholds = ThresholdConfig(
            open_threshold_percent=_decimal(params, "open_threshold_percent", "parameters"),
            close_threshold_percent=_decimal(params, "close_threshold_percent", "parameters"),
            funding_rate_threshold_percent=_decimal(
                params, "funding_rate_threshold_percent", "parameters"
            ),
            fee_aware_open=bool(params.get("fee_aware_open", False)),
        )

        trade_amount = _decimal(paper, "trade_amount_quote", "paper_trading")
        if trade_amount <= 0:
            raise ConfigError("paper_trading.trade_amount_quote must be positive")

        balances_raw = paper.get("initial_balance", {}) or {}
        if not isinstance(balances_raw, dict):
            raise ConfigError("paper_trading.initial_balance must be an object")
        initial_balance = {
            str(ccy): _decimal(balances_raw, ccy, "paper_trading.initial_balance")
            for ccy in balances_raw
        }

        try:
            feeds = FeedConfig(
                polling_interval_ms=int(feeds_raw.get("polling_interval_ms", 3000)),
                funding_refresh_secs=int(feeds_raw.get("funding_refresh_secs", 3600)),
                reconnect_delay_secs=int(feeds_raw.get("reconnect_delay_secs", 5)),
                request_timeout_ms=int(feeds_raw.get("request_timeout_ms", 20000)),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid feeds section: {exc}") from exc

        mode = raw.get("mode", "polling")
        if mode not in VALID_MODES:
            raise ConfigError(f"mode must be one of {VALID_MODES}, got {mode!r}")

        return cls(
            exchange=str(raw.get("exchange", "binance")),
            spot_symbol=str(spot_symbol),
            futures_symbol=str(futures_symbol),
            fees=fees,
            thresholds=thresholds,
            trade_amount_quote=trade_amount,
            initial_balance=initial_balance,
            strategy_name=str(raw.get("strategy_name", "cash_and_carry")),
            mode=mode,
            feeds=feeds,
            show_price_updates=bool(logging_raw.get("show_price_updates", False)),
            log_level=str(logging_raw.get("log_level", raw.get("log_level", "INFO"))),
            log_path=paths.get("log_path", "logs"),
            journal_path=paths.get("journal_path"),
        )


def _section(raw: dict, name: str) -> dict:
    section = raw.get(name)
    if not isinstance(section, dict):
        raise ConfigError(f"Missing or invalid section: {name!r}")
    return section


def _require(section: dict, key: str, where: str) -> Any:
    if key not in section or section[key] is None:
        raise ConfigError(f"Missing required key: {where}.{key}")
    return section[key]


def _decimal(section: dict, key: str, where: str) -> Decimal:
    value = _require(section, key, where)
    if isinstance(value, bool):
        raise ConfigError(f"{where}.{key} must be numeric, got {value!r}")
    try:
        result = to_decimal(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{where}.{key} must be numeric, got {value!r}") from exc
    if not result.is_finite():
        raise ConfigError(f"{where}.{key} must be finite, got {value!r}")
    return result


def load_config(config_path: str | Path) -> CarryArbConfig:
    """Read the JSON configuration file and return a validated config."""
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {config_path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {config_path}: {exc}") from exc
    return CarryArbConfig.from_dict(raw)
