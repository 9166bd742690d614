"""
Entry/exit rules for the cash-and-carry trade.

``evaluate`` is a pure function of the market snapshot, the current
position and the configured thresholds:

- flat:        OPEN  when basis% > open threshold AND funding% > funding floor
- positioned:  CLOSE when basis% < close threshold

All comparisons are strict; a value sitting exactly on a threshold never
triggers.  The combined taker-fee percentage is always computed and returned
for logging, but it only gates the entry when ``fee_aware_open`` is set, in
which case the basis net of fees must clear the open threshold.
"""

from __future__ import annotations

from typing import Optional

from carry_arb.core.config import FeeConfig, ThresholdConfig
from carry_arb.core.models import Decision, Evaluation, MarketSnapshot, Position
from carry_arb.helpers.financial_helper import (
    calculate_basis,
    calculate_basis_percent,
    combined_fee_percent,
)

NO_ACTION = Evaluation(decision=Decision.NO_ACTION)


def evaluate(
    snapshot: MarketSnapshot,
    position: Optional[Position],
    thresholds: ThresholdConfig,
    fees: FeeConfig,
) -> Evaluation:
    """Decide whether to open, close or do nothing for the given snapshot."""
    if (
        snapshot.spot is None
        or snapshot.futures is None
        or snapshot.funding_rate_percent is None
    ):
        return NO_ACTION

    spot_ask = snapshot.spot.ask
    futures_bid = snapshot.futures.bid
    basis = calculate_basis(futures_bid, spot_ask)
    basis_percent = calculate_basis_percent(futures_bid, spot_ask)
    open_fee_percent = combined_fee_percent(fees.spot_taker, fees.futures_taker)

    decision = Decision.NO_ACTION
    if position is None:
        if (
            basis_percent > thresholds.open_threshold_percent
            and snapshot.funding_rate_percent > thresholds.funding_rate_threshold_percent
        ):
            decision = Decision.OPEN
            if (
                thresholds.fee_aware_open
                and not basis_percent - open_fee_percent > thresholds.open_threshold_percent
            ):
                decision = Decision.NO_ACTION
    elif basis_percent < thresholds.close_threshold_percent:
        decision = Decision.CLOSE

    return Evaluation(
        decision=decision,
        basis=basis,
        basis_percent=basis_percent,
        open_fee_percent=open_fee_percent,
    )
