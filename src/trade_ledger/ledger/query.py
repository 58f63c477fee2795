"""Filtering and sorting of trade lists for display."""

from __future__ import annotations

from typing import Iterable

from trade_ledger.core.enums import Direction
from trade_ledger.core.models import TradeRecord

SORTABLE_FIELDS = (
    "date",
    "pair",
    "direction",
    "balance_trade",
    "commission",
    "final_result",
    "created_at",
)


def filter_trades(
    trades: Iterable[TradeRecord],
    *,
    search: str | None = None,
    direction: Direction | str | None = None,
    sort_key: str = "date",
    descending: bool = True,
) -> list[TradeRecord]:
    """Filter by a search term and direction, then sort.

    ``search`` matches case-insensitively against the pair and the notes.
    Ties keep the input order.
    """
    if sort_key not in SORTABLE_FIELDS:
        raise ValueError(f"Cannot sort trades by {sort_key!r}")

    result = list(trades)
    if search:
        term = search.lower()
        result = [
            t for t in result
            if term in t.pair.lower() or term in (t.notes or "").lower()
        ]
    if direction:
        wanted = Direction(direction)
        result = [t for t in result if t.direction == wanted]

    return sorted(result, key=lambda t: getattr(t, sort_key), reverse=descending)
