"""Tests for TradeTracker: state ownership, persistence and fallback."""

from __future__ import annotations

from decimal import Decimal

import pytest

from trade_ledger.core.enums import NoticeLevel
from trade_ledger.core.errors import (
    PersistenceError,
    SnapshotFormatError,
    TradeNotFoundError,
    TradeValidationError,
)
from trade_ledger.core.interfaces import ILedgerBackend
from trade_ledger.core.models import AccountSettings
from trade_ledger.ledger.tracker import TradeTracker

from tests.conftest import make_deposits, make_settings, make_trade


class MemoryBackend:
    """In-memory backend that records every save."""

    def __init__(self, name: str = "memory", trades=None, deposits=None, settings=None):
        self._name = name
        self.trades = list(trades or [])
        self.deposits = dict(deposits or {})
        self.settings = settings or AccountSettings()
        self.saves: list[str] = []

    @property
    def name(self) -> str:
        return self._name

    async def load_trades(self):
        return list(self.trades)

    async def load_deposits(self):
        return dict(self.deposits)

    async def load_settings(self):
        return self.settings

    async def save_trades(self, trades):
        self.saves.append("trades")
        self.trades = list(trades)

    async def save_deposits(self, deposits):
        self.saves.append("deposits")
        self.deposits = dict(deposits)

    async def save_settings(self, settings):
        self.saves.append("settings")
        self.settings = settings


class FailingBackend(MemoryBackend):
    """Backend whose loads and/or saves raise PersistenceError."""

    def __init__(self, *, fail_load: bool = False, fail_save: bool = True, **kwargs):
        super().__init__(name="remote", **kwargs)
        self.fail_load = fail_load
        self.fail_save = fail_save

    def _fail(self):
        raise PersistenceError(self.name, "connection refused")

    async def load_trades(self):
        if self.fail_load:
            self._fail()
        return await super().load_trades()

    async def load_deposits(self):
        if self.fail_load:
            self._fail()
        return await super().load_deposits()

    async def load_settings(self):
        if self.fail_load:
            self._fail()
        return await super().load_settings()

    async def save_trades(self, trades):
        if self.fail_save:
            self._fail()
        await super().save_trades(trades)

    async def save_deposits(self, deposits):
        if self.fail_save:
            self._fail()
        await super().save_deposits(deposits)

    async def save_settings(self, settings):
        if self.fail_save:
            self._fail()
        await super().save_settings(settings)


class HalfLoadingBackend(MemoryBackend):
    """Loads trades, then fails on deposits."""

    async def load_deposits(self):
        raise PersistenceError(self.name, "timeout")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def tracker(backend, fixed_clock):
    return TradeTracker(backend, clock=fixed_clock)


def test_backends_satisfy_protocol():
    assert isinstance(MemoryBackend(), ILedgerBackend)
    assert isinstance(FailingBackend(), ILedgerBackend)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

class TestLoad:
    @pytest.mark.asyncio
    async def test_load_replaces_state(self, fixed_clock):
        trade = make_trade("2024-03-02", "8")
        backend = MemoryBackend(
            trades=[trade],
            deposits=make_deposits(**{"2024-03": "40"}),
            settings=make_settings("60"),
        )
        tracker = TradeTracker(backend, clock=fixed_clock)
        await tracker.load()
        assert tracker.trades == [trade]
        assert tracker.deposits["2024-03"].deposit == Decimal("40")
        assert tracker.settings.initial_account_balance == Decimal("60")

    @pytest.mark.asyncio
    async def test_partial_load_leaves_memory_untouched(self, fixed_clock):
        broken = HalfLoadingBackend(trades=[make_trade()])
        tracker = TradeTracker(broken, clock=fixed_clock)
        with pytest.raises(PersistenceError):
            await tracker.load()
        assert tracker.trades == []
        assert tracker.drain_notices()[0].level == NoticeLevel.ERROR

    @pytest.mark.asyncio
    async def test_load_falls_back_to_local(self, fixed_clock):
        local = MemoryBackend(name="local", trades=[make_trade()])
        tracker = TradeTracker(FailingBackend(fail_load=True), fallback=local, clock=fixed_clock)
        await tracker.load()
        assert tracker.using_fallback
        assert tracker.backend is local
        assert len(tracker.trades) == 1
        notices = tracker.drain_notices()
        assert notices[0].level == NoticeLevel.WARNING
        assert "connection refused" in notices[0].message


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

class TestMutations:
    @pytest.mark.asyncio
    async def test_add_trade_persists(self, tracker, backend, draft):
        record = await tracker.add_trade(draft)
        assert tracker.get_trade(record.id) == record
        assert backend.trades == [record]
        assert backend.saves == ["trades"]

    @pytest.mark.asyncio
    async def test_invalid_trade_not_persisted(self, tracker, backend, draft):
        draft["balance_trade"] = "lots"
        with pytest.raises(TradeValidationError):
            await tracker.add_trade(draft)
        assert tracker.trades == []
        assert backend.saves == []

    @pytest.mark.asyncio
    async def test_update_and_delete(self, tracker, backend, draft):
        record = await tracker.add_trade(draft)
        updated = await tracker.update_trade(record.id, {"commission": "2.5"})
        assert updated.final_result == Decimal("10.00")
        assert backend.trades[0].commission == Decimal("2.5")

        await tracker.delete_trade(record.id)
        assert tracker.trades == []
        assert backend.trades == []

    @pytest.mark.asyncio
    async def test_delete_unknown(self, tracker):
        with pytest.raises(TradeNotFoundError):
            await tracker.delete_trade("missing")

    @pytest.mark.asyncio
    async def test_set_deposit(self, tracker, backend):
        await tracker.set_deposit("2024-03", "125")
        assert backend.deposits["2024-03"].deposit == Decimal("125")
        assert backend.saves == ["deposits"]

    @pytest.mark.asyncio
    async def test_update_settings(self, tracker, backend):
        settings = await tracker.update_settings(initial_account_balance="300", base_month="2024-01")
        assert settings.base_month == "2024-01"
        assert backend.settings.initial_account_balance == Decimal("300")

    @pytest.mark.asyncio
    async def test_update_settings_invalid_keeps_old(self, tracker, backend):
        with pytest.raises(TradeValidationError):
            await tracker.update_settings(base_month="March")
        assert tracker.settings == AccountSettings()
        assert backend.saves == []


# ---------------------------------------------------------------------------
# Persistence failure
# ---------------------------------------------------------------------------

class TestFallback:
    @pytest.mark.asyncio
    async def test_save_failure_switches_to_local(self, fixed_clock, draft):
        local = MemoryBackend(name="local")
        tracker = TradeTracker(FailingBackend(), fallback=local, clock=fixed_clock)
        await tracker.set_deposit("2024-03", "10")
        record = await tracker.add_trade(draft)

        assert tracker.using_fallback
        assert local.trades == [record]
        assert local.deposits["2024-03"].deposit == Decimal("10")
        assert set(local.saves[:3]) == {"trades", "deposits", "settings"}
        notices = tracker.drain_notices()
        assert len(notices) == 1
        assert notices[0].level == NoticeLevel.WARNING
        assert tracker.drain_notices() == []

    @pytest.mark.asyncio
    async def test_no_fallback_raises_but_keeps_memory(self, fixed_clock, draft):
        tracker = TradeTracker(FailingBackend(), clock=fixed_clock)
        with pytest.raises(PersistenceError):
            await tracker.add_trade(draft)
        assert len(tracker.trades) == 1
        assert tracker.notices[0].level == NoticeLevel.ERROR

    @pytest.mark.asyncio
    async def test_fallback_failure_raises(self, fixed_clock, draft):
        tracker = TradeTracker(
            FailingBackend(), fallback=FailingBackend(), clock=fixed_clock
        )
        with pytest.raises(PersistenceError):
            await tracker.add_trade(draft)
        assert len(tracker.trades) == 1
        levels = [n.level for n in tracker.drain_notices()]
        assert levels == [NoticeLevel.WARNING, NoticeLevel.ERROR]

    @pytest.mark.asyncio
    async def test_fallback_same_as_backend_is_ignored(self, fixed_clock, draft):
        backend = FailingBackend()
        tracker = TradeTracker(backend, fallback=backend, clock=fixed_clock)
        with pytest.raises(PersistenceError):
            await tracker.add_trade(draft)
        assert not tracker.using_fallback


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------

class TestSnapshot:
    @pytest.mark.asyncio
    async def test_export_import_round_trip(self, tracker, draft, fixed_clock):
        await tracker.add_trade(draft)
        await tracker.set_deposit("2024-03", "20")
        await tracker.update_settings(initial_account_balance="99")
        exported = tracker.export_snapshot()

        other_backend = MemoryBackend()
        other = TradeTracker(other_backend, clock=fixed_clock)
        await other.import_snapshot(exported)
        assert other.trades == tracker.trades
        assert other.deposits == tracker.deposits
        assert other.settings == tracker.settings
        assert other_backend.trades == tracker.trades
        assert other.snapshot_dict()["trades"] == tracker.snapshot_dict()["trades"]

    @pytest.mark.asyncio
    async def test_bad_snapshot_changes_nothing(self, tracker, backend, draft):
        await tracker.add_trade(draft)
        backend.saves.clear()
        with pytest.raises(SnapshotFormatError):
            await tracker.import_snapshot('{"trades": "nope", "monthlyDeposits": {}}')
        assert len(tracker.trades) == 1
        assert backend.saves == []

    @pytest.mark.asyncio
    async def test_snapshot_without_settings_keeps_current(self, tracker):
        await tracker.update_settings(initial_account_balance="42")
        await tracker.import_snapshot({"trades": [], "monthlyDeposits": {}})
        assert tracker.settings.initial_account_balance == Decimal("42")


# ---------------------------------------------------------------------------
# Derived values
# ---------------------------------------------------------------------------

class TestDerived:
    @pytest.fixture
    def loaded(self, fixed_clock):
        backend = MemoryBackend(
            trades=[
                make_trade("2024-01-10", "-18", "2"),
                make_trade("2024-02-05", "31", "1"),
                make_trade("2024-03-12", "10.5", "0.5"),
            ],
            deposits=make_deposits(**{"2024-01": "100", "2024-03": "50"}),
            settings=make_settings("0", "2024-01"),
        )
        return TradeTracker(backend, clock=fixed_clock)

    @pytest.mark.asyncio
    async def test_month_stats_default_current_month(self, loaded):
        await loaded.load()
        stats = loaded.month_stats()
        assert stats.month_starting_balance == Decimal("110")
        assert stats.month_deposit == Decimal("50")
        assert stats.month_ending_balance == Decimal("170")
        assert stats.month_ending_balance == loaded.ending_balance("2024-03")

    @pytest.mark.asyncio
    async def test_total_balance_matches_current_month(self, loaded):
        await loaded.load()
        assert loaded.total_balance().current_balance == loaded.ending_balance(loaded.current_month())

    @pytest.mark.asyncio
    async def test_all_time_stats(self, loaded):
        await loaded.load()
        stats = loaded.all_time_stats()
        assert stats.total_trades == 3
        assert stats.operating_capital == Decimal("150")
        assert stats.month_ending_balance == Decimal("170")

    @pytest.mark.asyncio
    async def test_timeline(self, loaded):
        await loaded.load()
        rows = loaded.timeline()
        assert [r.month for r in rows] == ["2024-01", "2024-02", "2024-03"]
        assert rows[-1].ending_balance == Decimal("170")

    @pytest.mark.asyncio
    async def test_equity_curve_starts_from_operating_capital(self, loaded):
        await loaded.load()
        points = loaded.equity_curve("2024-03")
        assert points[0].balance == Decimal("170")

    @pytest.mark.asyncio
    async def test_history_edit_moves_later_months(self, loaded):
        await loaded.load()
        jan = loaded.month_trades("2024-01")[0]
        await loaded.update_trade(jan.id, {"balance_trade": "-8"})
        assert loaded.starting_balance("2024-03") == Decimal("120")

    @pytest.mark.asyncio
    async def test_bad_month_key(self, loaded):
        await loaded.load()
        with pytest.raises(TradeValidationError, match="month key"):
            loaded.month_stats("2024-13")

    @pytest.mark.asyncio
    async def test_risk_budget(self, loaded):
        await loaded.load()
        assert loaded.risk_budget().risk_amount == Decimal("1.70")
