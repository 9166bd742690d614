import copy
import json
from datetime import datetime, timezone

import pytest

from carry_arb.core.config import CarryArbConfig

BASE_CONFIG = {
    "strategy_name": "cash_and_carry",
    "exchange": "binance",
    "mode": "polling",
    "symbols": {"spot": "BTC/USDT", "futures": "BTC/USDT:USDT"},
    "fees": {"spot_taker": "0.001", "futures_taker": "0.001"},
    "parameters": {
        "open_threshold_percent": "0.5",
        "close_threshold_percent": "0.1",
        "funding_rate_threshold_percent": "0.01",
        "fee_aware_open": False,
    },
    "paper_trading": {
        "trade_amount_quote": "1000",
        "initial_balance": {"USDT": "10000"},
    },
    "feeds": {"polling_interval_ms": 10, "funding_refresh_secs": 1, "reconnect_delay_secs": 0},
    "logging": {"show_price_updates": True, "log_level": "DEBUG"},
    "data_paths": {"log_path": None, "journal_path": None},
}

FIXED_TIME = datetime(2026, 1, 27, 12, 0, 0, tzinfo=timezone.utc)


def make_config_dict(**overrides) -> dict:
    """Deep copy of BASE_CONFIG with top-level sections merged from *overrides*."""
    raw = copy.deepcopy(BASE_CONFIG)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(raw.get(key), dict):
            raw[key].update(value)
        else:
            raw[key] = value
    return raw


def make_config(**overrides) -> CarryArbConfig:
    return CarryArbConfig.from_dict(make_config_dict(**overrides))


@pytest.fixture
def config() -> CarryArbConfig:
    return make_config()


@pytest.fixture
def config_file(tmp_path):
    def _write(raw: dict):
        path = tmp_path / "carry_arb_config.json"
        with open(path, "w") as f:
            json.dump(raw, f)
        return path
    return _write


@pytest.fixture
def config_factory():
    return make_config


@pytest.fixture
def raw_config_factory():
    return make_config_dict
