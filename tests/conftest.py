"""Shared fixtures for the trade-ledger test suite."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from trade_ledger.core.clock import FixedClock
from trade_ledger.core.enums import Direction
from trade_ledger.core.models import AccountSettings, MonthlyDeposit, TradeRecord

_counter = 0


def make_trade(
    day: str | date = "2024-01-15",
    balance: str | Decimal = "10",
    commission: str | Decimal = "0",
    *,
    pair: str = "BTC",
    direction: Direction = Direction.LONG,
    notes: str = "",
    trade_id: str | None = None,
    created_at: datetime | None = None,
) -> TradeRecord:
    """Build a TradeRecord with sensible defaults and a unique id."""
    global _counter
    _counter += 1
    if isinstance(day, str):
        day = date.fromisoformat(day)
    return TradeRecord(
        id=trade_id or f"t-{_counter:05d}",
        created_at=created_at or datetime(2024, 1, 1, 0, 0, _counter % 60, tzinfo=timezone.utc),
        date=day,
        pair=pair,
        direction=direction,
        balance_trade=Decimal(str(balance)),
        commission=Decimal(str(commission)),
        notes=notes,
    )


def make_deposits(**by_month: str) -> dict[str, MonthlyDeposit]:
    """``make_deposits(**{"2024-01": "100"})`` -> deposit mapping."""
    return {k: MonthlyDeposit(deposit=Decimal(v)) for k, v in by_month.items()}


def make_settings(initial: str = "0", base_month: str | None = None, **extra) -> AccountSettings:
    return AccountSettings(
        initial_account_balance=Decimal(initial), base_month=base_month, **extra
    )


@pytest.fixture
def fixed_clock():
    """Clock pinned to 2024-03-15 UTC."""
    return FixedClock(datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def draft():
    return {
        "date": "2024-03-04",
        "pair": "btc",
        "direction": "Long",
        "balance_trade": "12.50",
        "commission": "0.40",
        "notes": "breakout",
    }
