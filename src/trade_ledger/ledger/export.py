"""Trade export: CSV/JSON output and monthly summary rows.

Exports trade records in standard formats for spreadsheets and external
analysis.  Full-ledger backups (settings and deposits included) live in
``snapshot``.

Usage::

    exporter = TradeExporter()
    csv_str = exporter.to_csv(trades)
    json_str = exporter.to_json(trades)
    rows = exporter.monthly_summary(resolver, trades)
"""

from __future__ import annotations

import csv
import io
import json
from collections import defaultdict
from typing import Any, Iterable

from trade_ledger.core.models import TradeRecord

from .balance import BalanceResolver
from .months import month_key_of
from .stats import compute_stats

# Default CSV columns
_CSV_COLUMNS = [
    "id",
    "date",
    "month",
    "pair",
    "direction",
    "outcome",
    "balance_trade",
    "commission",
    "final_result",
    "notes",
    "created_at",
]


class TradeExporter:
    """Export trades to CSV/JSON and build per-month summary rows.

    Parameters
    ----------
    decimal_places : int | None
        Quantize money fields to this many places.  ``None`` (default)
        writes exact values.
    """

    def __init__(self, *, decimal_places: int | None = None) -> None:
        self._dp = decimal_places

    # ------------------------------------------------------------------ #
    # CSV Export                                                           #
    # ------------------------------------------------------------------ #

    def to_csv(
        self,
        trades: Iterable[TradeRecord],
        *,
        columns: list[str] | None = None,
    ) -> str:
        """Export trades as a CSV string, oldest first, with header row."""
        cols = columns or _CSV_COLUMNS
        buf = io.StringIO()
        writer = csv.DictWriter(buf, fieldnames=cols, extrasaction="ignore")
        writer.writeheader()

        for trade in sorted(trades, key=lambda t: (t.date, t.created_at)):
            row = self._trade_to_row(trade)
            writer.writerow({c: row.get(c, "") for c in cols})

        return buf.getvalue()

    # ------------------------------------------------------------------ #
    # JSON Export                                                          #
    # ------------------------------------------------------------------ #

    def to_json(self, trades: Iterable[TradeRecord], *, indent: int = 2) -> str:
        rows = [self._trade_to_row(t) for t in sorted(trades, key=lambda t: (t.date, t.created_at))]
        return json.dumps(rows, indent=indent, default=str)

    # ------------------------------------------------------------------ #
    # Monthly summary                                                      #
    # ------------------------------------------------------------------ #

    def monthly_summary(
        self,
        resolver: BalanceResolver,
        trades: Iterable[TradeRecord],
    ) -> list[dict[str, Any]]:
        """One row per month from the base month to the latest with data."""
        buckets: dict[str, list[TradeRecord]] = defaultdict(list)
        for trade in trades:
            buckets[month_key_of(trade.date)].append(trade)

        rows = []
        for month in resolver.timeline():
            stats = compute_stats(buckets.get(month.month, []), month.starting_balance, month.deposit)
            rows.append({
                "month": month.month,
                "starting_balance": self._fmt(month.starting_balance),
                "deposit": self._fmt(month.deposit),
                "pnl": self._fmt(month.pnl),
                "ending_balance": self._fmt(month.ending_balance),
                "trades": stats.total_trades,
                "win_rate": self._fmt(stats.win_rate),
                "profit_factor": self._fmt(stats.profit_factor),
            })
        return rows

    # ------------------------------------------------------------------ #
    # Private helpers                                                      #
    # ------------------------------------------------------------------ #

    def _fmt(self, value) -> str:
        if self._dp is None or not value.is_finite():
            return str(value)
        return str(round(value, self._dp))

    def _trade_to_row(self, trade: TradeRecord) -> dict[str, Any]:
        """Convert a TradeRecord to a flat dict for export."""
        return {
            "id": trade.id,
            "date": trade.date.isoformat(),
            "month": month_key_of(trade.date),
            "pair": trade.pair,
            "direction": trade.direction.value,
            "outcome": trade.outcome.value,
            "balance_trade": self._fmt(trade.balance_trade),
            "commission": self._fmt(trade.commission),
            "final_result": self._fmt(trade.final_result),
            "notes": trade.notes,
            "created_at": trade.created_at.isoformat(),
        }
