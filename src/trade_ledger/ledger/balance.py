"""Month-by-month account balance resolution.

Balances are never stored.  Each month's starting balance is the previous
month's ending balance, anchored at a *base month* whose starting balance is
the configured initial account balance::

    starting(M) = initial                           if M <= base
    starting(M) = ending(previous(M))               otherwise
    ending(M)   = starting(M) + deposit(M) + pnl(M)

Because everything is derived from the trade list, deposit ledger and
settings, editing or deleting a historical trade moves every later month's
balance with no recalculation pass.

Trades dated before the base month still exist in the store but never
reach a balance.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Mapping

from trade_ledger.core.clock import IClock
from trade_ledger.core.models import AccountSettings, MonthlyDeposit, TradeRecord

from .months import current_month_key, iter_months, month_key_of, validate_month_key
from .store import DepositLedger


@dataclass(frozen=True)
class MonthBalance:
    """Balance movement for a single month."""

    month: str
    starting_balance: Decimal
    deposit: Decimal
    pnl: Decimal
    ending_balance: Decimal

    def to_dict(self) -> dict:
        return {
            "month": self.month,
            "starting_balance": str(self.starting_balance),
            "deposit": str(self.deposit),
            "pnl": str(self.pnl),
            "ending_balance": str(self.ending_balance),
        }


class BalanceResolver:
    """Derive starting and ending balances for any month.

    The resolver is a snapshot: it indexes P&L by month once at
    construction.  Build a new one after the ledger changes.

    Parameters
    ----------
    trades : Iterable[TradeRecord]
        Every trade in the ledger.
    deposits : DepositLedger | Mapping[str, MonthlyDeposit]
        Deposits per month key.
    settings : AccountSettings
        Supplies ``initial_account_balance`` and the optional ``base_month``.
    clock : IClock | None
        Decides the current month when there is neither an explicit base
        month nor any trade.
    """

    def __init__(
        self,
        trades: Iterable[TradeRecord],
        deposits: DepositLedger | Mapping[str, MonthlyDeposit],
        settings: AccountSettings,
        *,
        clock: IClock | None = None,
    ) -> None:
        self._settings = settings
        self._clock = clock

        if isinstance(deposits, DepositLedger):
            deposits = deposits.as_dict()
        self._deposits: dict[str, Decimal] = {
            key: entry.deposit for key, entry in deposits.items()
        }

        self._pnl_by_month: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
        for trade in trades:
            self._pnl_by_month[month_key_of(trade.date)] += trade.final_result

    # ------------------------------------------------------------------ #
    # Inputs                                                               #
    # ------------------------------------------------------------------ #

    @property
    def initial_balance(self) -> Decimal:
        return self._settings.initial_account_balance

    def base_month(self) -> str:
        """Anchor month: explicit setting, else earliest trade month, else now."""
        if self._settings.base_month:
            return self._settings.base_month
        if self._pnl_by_month:
            return min(self._pnl_by_month)
        return current_month_key(self._clock)

    def deposit(self, month_key: str) -> Decimal:
        return self._deposits.get(month_key, Decimal("0"))

    def month_pnl(self, month_key: str) -> Decimal:
        """Sum of ``final_result`` over trades dated within *month_key*."""
        return self._pnl_by_month.get(month_key, Decimal("0"))

    def latest_month(self) -> str:
        """Latest month holding a trade or a deposit, never before the base."""
        candidates = [self.base_month(), *self._pnl_by_month, *self._deposits]
        return max(candidates)

    # ------------------------------------------------------------------ #
    # Balances                                                             #
    # ------------------------------------------------------------------ #

    def starting_balance(self, month_key: str) -> Decimal:
        validate_month_key(month_key)
        base = self.base_month()
        balance = self.initial_balance
        if month_key <= base:
            return balance
        # Carry forward one month at a time: base .. month before month_key.
        for month in iter_months(base, month_key):
            if month == month_key:
                break
            balance += self.deposit(month) + self.month_pnl(month)
        return balance

    def ending_balance(self, month_key: str) -> Decimal:
        return (
            self.starting_balance(month_key)
            + self.deposit(month_key)
            + self.month_pnl(month_key)
        )

    def month_balance(self, month_key: str) -> MonthBalance:
        starting = self.starting_balance(month_key)
        deposit = self.deposit(month_key)
        pnl = self.month_pnl(month_key)
        return MonthBalance(
            month=month_key,
            starting_balance=starting,
            deposit=deposit,
            pnl=pnl,
            ending_balance=starting + deposit + pnl,
        )

    def timeline(self, start: str | None = None, end: str | None = None) -> list[MonthBalance]:
        """Balances for every month from *start* to *end* inclusive.

        Defaults span the base month to the latest month with data.  Months
        are folded forward in a single pass.
        """
        start = start or self.base_month()
        end = end or self.latest_month()
        rows: list[MonthBalance] = []
        starting: Decimal | None = None
        for month in iter_months(start, end):
            if starting is None or month <= self.base_month():
                starting = self.starting_balance(month)
            deposit = self.deposit(month)
            pnl = self.month_pnl(month)
            ending = starting + deposit + pnl
            rows.append(MonthBalance(month, starting, deposit, pnl, ending))
            starting = ending
        return rows
