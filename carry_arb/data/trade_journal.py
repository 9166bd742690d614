"""
In-memory journal of closed paper trades.

The journal is a session artefact: it collects every
:class:`ClosedTradeReport` produced while the bot runs, summarises them with
pandas, and can export them as CSV.  It is never read back on start-up.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import pandas as pd

from carry_arb.core.models import ClosedTradeReport
from carry_arb.helpers.data_helper import save_df_to_csv
from carry_arb.helpers.financial_helper import calculate_trade_metrics

JOURNAL_COLUMNS = [
    "entry_time", "exit_time", "amount",
    "entry_spot_price", "entry_futures_price",
    "exit_spot_price", "exit_futures_price",
    "initial_basis_percent", "exit_basis_percent",
    "spot_pnl", "futures_pnl", "total_fees", "net_pnl",
]


class TradeJournal:
    def __init__(self) -> None:
        self._trades: list[ClosedTradeReport] = []

    def record(self, report: ClosedTradeReport) -> None:
        self._trades.append(report)

    @property
    def trades(self) -> list[ClosedTradeReport]:
        return list(self._trades)

    def __len__(self) -> int:
        return len(self._trades)

    def to_frame(self) -> pd.DataFrame:
        """One row per closed trade; Decimal values become floats."""
        rows = [
            {
                "entry_time": pd.Timestamp(t.entry_timestamp),
                "exit_time": pd.Timestamp(t.exit_timestamp),
                "amount": float(t.amount),
                "entry_spot_price": float(t.entry_spot_price),
                "entry_futures_price": float(t.entry_futures_price),
                "exit_spot_price": float(t.exit_spot_price),
                "exit_futures_price": float(t.exit_futures_price),
                "initial_basis_percent": float(t.initial_basis_percent),
                "exit_basis_percent": float(t.exit_basis_percent),
                "spot_pnl": float(t.spot_pnl),
                "futures_pnl": float(t.futures_pnl),
                "total_fees": float(t.total_fees),
                "net_pnl": float(t.net_pnl),
            }
            for t in self._trades
        ]
        return pd.DataFrame(rows, columns=JOURNAL_COLUMNS)

    def summary(self) -> dict:
        df = self.to_frame()
        return calculate_trade_metrics(df["net_pnl"], df["total_fees"])

    def save_csv(self, directory: str | Path, filename: Optional[str] = None) -> str:
        """Write the journal to *directory* and return the file path."""
        if filename is None:
            filename = f"carry_trades_{pd.Timestamp.now(tz='UTC').strftime('%Y%m%d_%H%M%S')}.csv"
        file_path = str(Path(directory) / filename)
        save_df_to_csv(self.to_frame(), file_path, index=False)
        return file_path
