"""All-time account totals.

A flat sum over every trade and every deposit, deliberately independent of
the month-by-month ``BalanceResolver``.  The two must agree: the resolver's
ending balance for the latest month with data equals ``current_balance``
whenever no trade predates the base month.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Mapping

from trade_ledger.core.models import MonthlyDeposit, TradeRecord

from .store import DepositLedger


@dataclass(frozen=True)
class TotalBalance:
    initial_capital: Decimal
    total_deposits: Decimal
    all_time_pnl: Decimal
    current_balance: Decimal

    def to_dict(self) -> dict[str, str]:
        return {
            "initial_capital": str(self.initial_capital),
            "total_deposits": str(self.total_deposits),
            "all_time_pnl": str(self.all_time_pnl),
            "current_balance": str(self.current_balance),
        }


def compute_total_balance(
    trades: Iterable[TradeRecord],
    deposits: DepositLedger | Mapping[str, MonthlyDeposit],
    initial_account_balance: Decimal,
) -> TotalBalance:
    all_time_pnl = sum((t.final_result for t in trades), Decimal("0"))
    if isinstance(deposits, DepositLedger):
        total_deposits = deposits.total()
    else:
        total_deposits = sum((d.deposit for d in deposits.values()), Decimal("0"))
    return TotalBalance(
        initial_capital=initial_account_balance,
        total_deposits=total_deposits,
        all_time_pnl=all_time_pnl,
        current_balance=initial_account_balance + total_deposits + all_time_pnl,
    )
