from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

@dataclass(frozen=True)
class PriceQuote:
    bid: Decimal
    ask: Decimal

@dataclass(frozen=True)
class MarketSnapshot:
    spot: Optional[PriceQuote] = None
    futures: Optional[PriceQuote] = None
    funding_rate_percent: Optional[Decimal] = None  # exchange fraction x 100

class Decision(Enum):
    NO_ACTION = "no_action"
    OPEN = "open"
    CLOSE = "close"

@dataclass(frozen=True)
class Evaluation:
    decision: Decision
    basis: Optional[Decimal] = None
    basis_percent: Optional[Decimal] = None
    open_fee_percent: Optional[Decimal] = None

@dataclass(frozen=True)
class Position:
    entry_timestamp: datetime
    amount: Decimal             # base-currency quantity, same on both legs
    entry_spot_price: Decimal   # spot ask paid
    entry_futures_price: Decimal  # futures bid sold
    initial_basis_percent: Decimal

@dataclass(frozen=True)
class TradeFill:
    leg: str     # "spot" or "futures"
    side: str    # "buy" or "sell"
    amount: Decimal
    price: Decimal
    fee: Decimal

@dataclass(frozen=True)
class OpenedTradeReport:
    position: Position
    fills: tuple[TradeFill, ...]
    fees_paid: Decimal
    portfolio: dict[str, Decimal] = field(default_factory=dict)

@dataclass(frozen=True)
class ClosedTradeReport:
    entry_timestamp: datetime
    exit_timestamp: datetime
    amount: Decimal
    entry_spot_price: Decimal
    entry_futures_price: Decimal
    exit_spot_price: Decimal
    exit_futures_price: Decimal
    initial_basis_percent: Decimal
    exit_basis_percent: Decimal
    spot_pnl: Decimal
    futures_pnl: Decimal
    total_fees: Decimal
    net_pnl: Decimal
    fills: tuple[TradeFill, ...] = ()
    portfolio: dict[str, Decimal] = field(default_factory=dict)
