"""Running balance after each trade, for equity-curve display."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from trade_ledger.core.models import TradeRecord


@dataclass(frozen=True)
class EquityPoint:
    date: dt.date
    balance: Decimal
    result: Decimal
    pair: str


def equity_curve(
    trades: Iterable[TradeRecord],
    starting_balance: Decimal = Decimal("0"),
) -> list[EquityPoint]:
    """Apply each trade's ``final_result`` to *starting_balance* in date order.

    Trades on the same day are applied in creation order.
    """
    ordered = sorted(trades, key=lambda t: (t.date, t.created_at))
    running = starting_balance
    points: list[EquityPoint] = []
    for trade in ordered:
        running += trade.final_result
        points.append(
            EquityPoint(
                date=trade.date,
                balance=running,
                result=trade.final_result,
                pair=trade.pair,
            )
        )
    return points
