"""
Cash-and-carry decision engine.

:class:`CashAndCarryEngine` is the one object the feeds talk to.  It owns the
price store, the paper ledger and (optionally) the trade journal, and exposes
one entry point per feed type:

    on_spot_ticker(bid, ask)       -> store update, evaluate, maybe trade
    on_futures_ticker(bid, ask)    -> store update, evaluate, maybe trade
    on_tickers(spot_bid, spot_ask,
               futures_bid, futures_ask)
                                   -> both updates, one evaluation
    on_funding_rate(rate_fraction) -> store update only

Polling feeds fetch both venues as one pair and must use ``on_tickers``;
pushing the pair through the per-venue entry points would evaluate the new
spot quote against the previous futures quote.

Every entry point runs under a single lock, so the store mutation, the
evaluation that follows it and any resulting open/close are one indivisible
step.  Polling and streaming feeds can therefore drive the same engine, from
the event loop or from worker threads, without ever producing two
transitions from the same opportunity.

State machine::

    flat --OPEN--> positioned --CLOSE--> flat
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Optional

from carry_arb.core.config import CarryArbConfig
from carry_arb.core.models import (
    ClosedTradeReport,
    Decision,
    Evaluation,
    MarketSnapshot,
    OpenedTradeReport,
    Position,
)
from carry_arb.core.price_store import PriceStore
from carry_arb.data.trade_journal import TradeJournal
from carry_arb.helpers.financial_helper import HUNDRED, to_decimal
from carry_arb.strategies.evaluator import evaluate
from carry_arb.strategies.ledger import PaperLedger
from carry_arb.utils.logger import log_event

STATE_FLAT = "flat"
STATE_POSITIONED = "positioned"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CashAndCarryEngine:
    """
    Parameters
    ----------
    config : CarryArbConfig
        Validated configuration (symbols, fees, thresholds, notional).
    logger : logging.Logger, optional
        Falls back to a module-level logger.
    journal : TradeJournal, optional
        Receives every closed trade.
    clock : callable, optional
        Returns the timestamp stamped on positions; defaults to UTC now.
    """

    def __init__(
        self,
        config: CarryArbConfig,
        logger: Optional[logging.Logger] = None,
        journal: Optional[TradeJournal] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.journal = journal
        self._clock = clock or _utcnow
        self._lock = threading.Lock()
        self.store = PriceStore()
        self.ledger = PaperLedger(
            initial_balances=config.initial_balance,
            base_currency=config.base_currency,
            quote_currency=config.quote_currency,
            fees=config.fees,
        )
        log_event(self.logger, "portfolio", reason="init", balances=self.ledger.portfolio)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> str:
        return STATE_FLAT if self.ledger.position is None else STATE_POSITIONED

    @property
    def position(self) -> Optional[Position]:
        return self.ledger.position

    @property
    def portfolio(self) -> dict[str, Decimal]:
        return self.ledger.portfolio

    def snapshot(self) -> MarketSnapshot:
        return self.store.snapshot()

    # ------------------------------------------------------------------
    # Feed entry points
    # ------------------------------------------------------------------

    def on_spot_ticker(self, bid, ask) -> Evaluation:
        with self._lock:
            if not self.store.update_spot(bid, ask):
                self.logger.warning(f"Rejected spot quote bid={bid} ask={ask}; spot price now unknown.")
            return self._evaluate_and_act()

    def on_futures_ticker(self, bid, ask) -> Evaluation:
        with self._lock:
            if not self.store.update_futures(bid, ask):
                self.logger.warning(f"Rejected futures quote bid={bid} ask={ask}; futures price now unknown.")
            return self._evaluate_and_act()

    def on_tickers(self, spot_bid, spot_ask, futures_bid, futures_ask) -> Evaluation:
        """Store a spot/futures pair fetched together and evaluate once."""
        with self._lock:
            if not self.store.update_spot(spot_bid, spot_ask):
                self.logger.warning(f"Rejected spot quote bid={spot_bid} ask={spot_ask}; spot price now unknown.")
            if not self.store.update_futures(futures_bid, futures_ask):
                self.logger.warning(
                    f"Rejected futures quote bid={futures_bid} ask={futures_ask}; futures price now unknown."
                )
            return self._evaluate_and_act()

    def on_funding_rate(self, rate_fraction) -> Optional[Decimal]:
        """Store the exchange funding rate (a fraction) as a percentage."""
        with self._lock:
            try:
                rate_percent = to_decimal(rate_fraction) * HUNDRED
            except (TypeError, ValueError, ArithmeticError):
                rate_percent = None
            if not self.store.update_funding_rate(rate_percent):
                self.logger.warning(f"Rejected funding rate {rate_fraction!r}; funding rate now unknown.")
                return None
            log_event(
                self.logger, "funding_rate",
                symbol=self.config.futures_symbol,
                rate_percent=rate_percent.quantize(Decimal("0.0001")),
            )
            return rate_percent

    # ------------------------------------------------------------------
    # Internals (caller holds the lock)
    # ------------------------------------------------------------------

    def _evaluate_and_act(self) -> Evaluation:
        snapshot = self.store.snapshot()
        result = evaluate(
            snapshot,
            self.ledger.position,
            self.config.thresholds,
            self.config.fees,
        )

        if self.config.show_price_updates and result.basis is not None:
            log_event(
                self.logger, "price_update",
                spot_ask=snapshot.spot.ask,
                futures_bid=snapshot.futures.bid,
                basis=result.basis,
                basis_percent=result.basis_percent.quantize(Decimal("0.0001")),
            )

        if result.decision == Decision.OPEN:
            self._open(snapshot, result)
        elif result.decision == Decision.CLOSE:
            self._close(snapshot, result)
        return result

    def _open(self, snapshot: MarketSnapshot, result: Evaluation) -> OpenedTradeReport:
        log_event(
            self.logger, "decision",
            action="open",
            basis_percent=result.basis_percent.quantize(Decimal("0.0001")),
            funding_rate_percent=snapshot.funding_rate_percent,
            open_fee_percent=result.open_fee_percent,
        )
        report = self.ledger.open_position(
            spot_ask=snapshot.spot.ask,
            futures_bid=snapshot.futures.bid,
            notional=self.config.trade_amount_quote,
            basis_percent=result.basis_percent,
            timestamp=self._clock(),
        )
        self._log_fills(report.fills, "open")
        log_event(self.logger, "portfolio", reason="open", balances=report.portfolio)
        return report

    def _close(self, snapshot: MarketSnapshot, result: Evaluation) -> ClosedTradeReport:
        log_event(
            self.logger, "decision",
            action="close",
            basis_percent=result.basis_percent.quantize(Decimal("0.0001")),
        )
        report = self.ledger.close_position(
            spot_bid=snapshot.spot.bid,
            futures_ask=snapshot.futures.ask,
            basis_percent=result.basis_percent,
            timestamp=self._clock(),
        )
        self._log_fills(report.fills, "close")
        log_event(
            self.logger, "pnl",
            net_pnl=report.net_pnl.quantize(Decimal("0.0001")),
            spot_pnl=report.spot_pnl,
            futures_pnl=report.futures_pnl,
            total_fees=report.total_fees,
            currency=self.config.quote_currency,
        )
        log_event(self.logger, "portfolio", reason="close", balances=report.portfolio)
        if self.journal is not None:
            self.journal.record(report)
        return report

    def _log_fills(self, fills, phase: str) -> None:
        for fill in fills:
            symbol = self.config.spot_symbol if fill.leg == "spot" else self.config.futures_symbol
            log_event(
                self.logger, "execution",
                phase=phase,
                leg=fill.leg,
                side=fill.side,
                symbol=symbol,
                amount=fill.amount.quantize(Decimal("0.000001")),
                price=fill.price,
                fee=fill.fee,
            )
