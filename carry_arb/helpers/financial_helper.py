"""Financial Helper Functions

This module contains the reusable arithmetic behind the cash-and-carry bot:
decimal conversion of exchange values, basis and basis-percent, taker fees,
and summary statistics over a series of closed-trade PnLs.
"""

import math
from decimal import Decimal, InvalidOperation
from typing import Optional

import pandas as pd

HUNDRED = Decimal("100")


def to_decimal(value) -> Decimal:
    """Convert an exchange value (float, int, str or Decimal) to Decimal.

    Floats go through ``str`` so ``0.1`` becomes ``Decimal('0.1')`` rather
    than its binary expansion.

    Raises:
        TypeError: If value is None or not a number-like type
        ValueError: If value cannot be parsed as a number
    """
    if isinstance(value, Decimal):
        return value
    if value is None or isinstance(value, bool):
        raise TypeError(f"Cannot convert {value!r} to Decimal")
    if isinstance(value, (int, float, str)):
        try:
            return Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"Cannot convert {value!r} to Decimal") from exc
    raise TypeError(f"Cannot convert {type(value).__name__} to Decimal")


def is_valid_price(value: Optional[Decimal]) -> bool:
    """A usable price is a finite, strictly positive Decimal."""
    return value is not None and value.is_finite() and value > 0


def calculate_basis(futures_bid: Decimal, spot_ask: Decimal) -> Decimal:
    """Basis captured by buying spot at the ask and selling futures at the bid."""
    return futures_bid - spot_ask


def calculate_basis_percent(futures_bid: Decimal, spot_ask: Decimal) -> Decimal:
    """Basis expressed as a percentage of the spot ask."""
    return calculate_basis(futures_bid, spot_ask) / spot_ask * HUNDRED


def calculate_taker_fee(notional: Decimal, fee_rate: Decimal) -> Decimal:
    """Taker fee charged on a fill of the given quote notional."""
    return notional * fee_rate


def combined_fee_percent(spot_taker: Decimal, futures_taker: Decimal) -> Decimal:
    """Percentage cost of crossing the spread on both legs once."""
    return (spot_taker + futures_taker) * HUNDRED


def calculate_win_rate(pnls: pd.Series) -> float:
    """Share of trades with strictly positive net PnL.

    Args:
        pnls: Series of per-trade net PnL

    Returns:
        Win rate as a decimal, NaN for an empty series
    """
    if len(pnls) == 0:
        return math.nan
    return float((pnls > 0).sum() / len(pnls))


def calculate_trade_metrics(pnls: pd.Series, fees: Optional[pd.Series] = None) -> dict:
    """Calculate summary metrics over a series of closed trades.

    Args:
        pnls: Series of per-trade net PnL (quote currency)
        fees: Optional series of per-trade total fees

    Returns:
        Dictionary with trade count, total/average/best/worst PnL, win rate
        and total fees
    """
    count = int(len(pnls))
    metrics = {
        'Trades': count,
        'Total Net PnL': float(pnls.sum()) if count else 0.0,
        'Average Net PnL': float(pnls.mean()) if count else math.nan,
        'Best Trade': float(pnls.max()) if count else math.nan,
        'Worst Trade': float(pnls.min()) if count else math.nan,
        'Win Rate': calculate_win_rate(pnls),
        'Total Fees': float(fees.sum()) if fees is not None and count else 0.0,
    }
    return metrics
