"""
Paper ledger for the cash-and-carry trade.

Owns the single optional :class:`Position` and the portfolio balances, and
simulates the two legs of each trade at the current top of book:

    open   buy ``amount`` spot at the ask, sell ``amount`` futures at the bid
    close  sell ``amount`` spot at the bid, buy back futures at the ask

Balances only move inside :meth:`PaperLedger.open_position` and
:meth:`PaperLedger.close_position`.  The quote balance reflects the spot legs
and all taker fees; futures PnL is reported on the closed trade but is not
credited to the balance.

An impossible transition (opening twice, closing while flat) is a defect in
the caller and raises :class:`LedgerInvariantError` before any balance is
touched.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from carry_arb.core.config import FeeConfig
from carry_arb.core.models import (
    ClosedTradeReport,
    OpenedTradeReport,
    Position,
    TradeFill,
)
from carry_arb.helpers.financial_helper import calculate_taker_fee, to_decimal

ZERO = Decimal("0")


class LedgerInvariantError(RuntimeError):
    """Raised when the ledger is asked for a transition its state forbids."""


class PaperLedger:
    def __init__(
        self,
        initial_balances: dict,
        base_currency: str,
        quote_currency: str,
        fees: FeeConfig,
    ) -> None:
        self.base_currency = base_currency
        self.quote_currency = quote_currency
        self.fees = fees
        self._balances: dict[str, Decimal] = {
            ccy: to_decimal(amount) for ccy, amount in initial_balances.items()
        }
        self._balances.setdefault(quote_currency, ZERO)
        self._position: Optional[Position] = None

    @property
    def position(self) -> Optional[Position]:
        return self._position

    @property
    def portfolio(self) -> dict[str, Decimal]:
        """A copy of the current balances."""
        return dict(self._balances)

    def open_position(
        self,
        spot_ask: Decimal,
        futures_bid: Decimal,
        notional: Decimal,
        basis_percent: Decimal,
        timestamp: datetime,
    ) -> OpenedTradeReport:
        """Buy spot / short futures for a fixed quote notional."""
        if self._position is not None:
            raise LedgerInvariantError("Cannot open: a position is already open")

        amount = notional / spot_ask
        spot_fee = calculate_taker_fee(notional, self.fees.spot_taker)
        futures_fee = calculate_taker_fee(amount * futures_bid, self.fees.futures_taker)

        self._balances[self.quote_currency] -= notional + spot_fee + futures_fee
        self._balances[self.base_currency] = (
            self._balances.get(self.base_currency, ZERO) + amount
        )

        position = Position(
            entry_timestamp=timestamp,
            amount=amount,
            entry_spot_price=spot_ask,
            entry_futures_price=futures_bid,
            initial_basis_percent=basis_percent,
        )
        self._position = position

        fills = (
            TradeFill(leg="spot", side="buy", amount=amount, price=spot_ask, fee=spot_fee),
            TradeFill(leg="futures", side="sell", amount=amount, price=futures_bid, fee=futures_fee),
        )
        return OpenedTradeReport(
            position=position,
            fills=fills,
            fees_paid=spot_fee + futures_fee,
            portfolio=self.portfolio,
        )

    def close_position(
        self,
        spot_bid: Decimal,
        futures_ask: Decimal,
        basis_percent: Decimal,
        timestamp: datetime,
    ) -> ClosedTradeReport:
        """Sell spot / buy back futures and realise the trade's PnL."""
        position = self._position
        if position is None:
            raise LedgerInvariantError("Cannot close: no position is open")

        amount = position.amount
        spot_sell_value = amount * spot_bid
        exit_spot_fee = calculate_taker_fee(spot_sell_value, self.fees.spot_taker)
        exit_futures_fee = calculate_taker_fee(amount * futures_ask, self.fees.futures_taker)

        spot_pnl = (spot_bid - position.entry_spot_price) * amount
        futures_pnl = (position.entry_futures_price - futures_ask) * amount

        # Entry fees are recomputed with the current rates, not read back.
        entry_spot_fee = calculate_taker_fee(
            amount * position.entry_spot_price, self.fees.spot_taker
        )
        entry_futures_fee = calculate_taker_fee(
            amount * position.entry_futures_price, self.fees.futures_taker
        )
        total_fees = exit_spot_fee + exit_futures_fee + entry_spot_fee + entry_futures_fee
        net_pnl = spot_pnl + futures_pnl - total_fees

        self._balances[self.quote_currency] += spot_sell_value - exit_spot_fee - exit_futures_fee
        self._balances[self.base_currency] = self._balances.get(self.base_currency, ZERO) - amount
        self._position = None

        fills = (
            TradeFill(leg="spot", side="sell", amount=amount, price=spot_bid, fee=exit_spot_fee),
            TradeFill(leg="futures", side="buy", amount=amount, price=futures_ask, fee=exit_futures_fee),
        )
        return ClosedTradeReport(
            entry_timestamp=position.entry_timestamp,
            exit_timestamp=timestamp,
            amount=amount,
            entry_spot_price=position.entry_spot_price,
            entry_futures_price=position.entry_futures_price,
            exit_spot_price=spot_bid,
            exit_futures_price=futures_ask,
            initial_basis_percent=position.initial_basis_percent,
            exit_basis_percent=basis_percent,
            spot_pnl=spot_pnl,
            futures_pnl=futures_pnl,
            total_fees=total_fees,
            net_pnl=net_pnl,
            fills=fills,
            portfolio=self.portfolio,
        )
