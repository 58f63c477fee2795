"""TradeTracker, the owner of the in-memory ledger.

Holds the trade store, deposit ledger and account settings, funnels every
mutation through validated entry points, and persists through a pluggable
backend.

Persistence rules
-----------------
* A mutation is applied in memory first, then saved.  While a save is
  pending, memory is the source of truth.
* A load replaces memory only after all three collections loaded.
* When the configured backend fails, the tracker records a ``Notice``,
  switches to the local fallback backend and carries on there.  Nothing is
  retried automatically.  ``PersistenceError`` reaches the caller only when
  there is no fallback left, and memory still holds the change.

Usage::

    backend = build_backend(cfg)
    tracker = TradeTracker(backend, fallback=build_fallback(cfg, backend))
    await tracker.load()
    await tracker.add_trade({"date": "2024-03-04", "pair": "BTC",
                             "direction": "Long", "balance_trade": "12.5",
                             "commission": "0.4"})
    stats = tracker.month_stats("2024-03")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping

from trade_ledger.core.clock import IClock, WallClock
from trade_ledger.core.enums import NoticeLevel
from trade_ledger.core.errors import PersistenceError
from trade_ledger.core.ids import utc_now
from trade_ledger.core.interfaces import ILedgerBackend
from trade_ledger.core.models import AccountSettings, MonthlyDeposit, TradeDraft, TradeRecord
from trade_ledger.observability.logger import get_logger

from .balance import BalanceResolver, MonthBalance
from .equity import EquityPoint, equity_curve
from .months import current_month_key, validate_month_key
from .risk import RiskBudget, risk_budget
from .snapshot import dump_snapshot, parse_snapshot, snapshot_to_dict
from .stats import StatsBundle, compute_stats
from .store import DepositLedger, TradeStore
from .totals import TotalBalance, compute_total_balance

logger = get_logger(__name__)

_ALL = ("trades", "deposits", "settings")


@dataclass(frozen=True)
class Notice:
    """A non-fatal message for whoever presents the ledger to the user."""

    level: NoticeLevel
    message: str
    created_at: datetime = field(default_factory=utc_now)


class TradeTracker:
    """Owns the ledger state and derives balances and statistics from it.

    Parameters
    ----------
    backend : ILedgerBackend
        Where the ledger is loaded from and saved to.
    fallback : ILedgerBackend | None
        Local backend to switch to when *backend* fails.  Ignored when it is
        the same object as *backend*.
    clock : IClock | None
        Source of "now" for the current month.  Wall clock by default.
    """

    def __init__(
        self,
        backend: ILedgerBackend,
        *,
        fallback: ILedgerBackend | None = None,
        clock: IClock | None = None,
    ) -> None:
        self._backend = backend
        self._fallback = fallback if fallback is not backend else None
        self._using_fallback = False
        self._clock = clock or WallClock()

        self._store = TradeStore()
        self._deposits = DepositLedger()
        self._settings = AccountSettings()
        self.notices: list[Notice] = []

    # ------------------------------------------------------------------ #
    # State                                                                #
    # ------------------------------------------------------------------ #

    @property
    def backend(self) -> ILedgerBackend:
        return self._backend

    @property
    def using_fallback(self) -> bool:
        return self._using_fallback

    @property
    def trades(self) -> list[TradeRecord]:
        return self._store.all()

    @property
    def deposits(self) -> dict[str, MonthlyDeposit]:
        return self._deposits.as_dict()

    @property
    def settings(self) -> AccountSettings:
        return self._settings

    def get_trade(self, trade_id: str) -> TradeRecord:
        return self._store.get(trade_id)

    def month_trades(self, month_key: str) -> list[TradeRecord]:
        return self._store.in_month(validate_month_key(month_key))

    def current_month(self) -> str:
        return current_month_key(self._clock)

    # ------------------------------------------------------------------ #
    # Loading                                                              #
    # ------------------------------------------------------------------ #

    async def load(self) -> None:
        """Replace in-memory state with what the backend holds."""
        try:
            loaded = await self._load_from(self._backend)
        except PersistenceError as exc:
            if not self._can_fall_back():
                self._notify(NoticeLevel.ERROR, f"Could not load ledger: {exc.reason}")
                raise
            self._switch_to_fallback(exc)
            try:
                loaded = await self._load_from(self._backend)
            except PersistenceError as fallback_exc:
                self._notify(
                    NoticeLevel.ERROR, f"Could not load ledger: {fallback_exc.reason}"
                )
                raise

        trades, deposits, settings = loaded
        self._store.replace_all(trades)
        self._deposits.replace_all(deposits)
        self._settings = settings
        logger.info(
            "ledger_loaded",
            backend=self._backend.name,
            trades=len(trades),
            deposit_months=len(deposits),
        )

    @staticmethod
    async def _load_from(
        backend: ILedgerBackend,
    ) -> tuple[list[TradeRecord], dict[str, MonthlyDeposit], AccountSettings]:
        trades = await backend.load_trades()
        deposits = await backend.load_deposits()
        settings = await backend.load_settings()
        return trades, deposits, settings

    # ------------------------------------------------------------------ #
    # Mutations                                                            #
    # ------------------------------------------------------------------ #

    async def add_trade(self, draft: TradeDraft | Mapping[str, Any]) -> TradeRecord:
        record = self._store.add(draft)
        logger.info("trade_added", trade_id=record.id, pair=record.pair, date=str(record.date))
        await self._persist("trades")
        return record

    async def update_trade(self, trade_id: str, changes: Mapping[str, Any]) -> TradeRecord:
        record = self._store.update(trade_id, changes)
        logger.info("trade_updated", trade_id=trade_id, fields=sorted(changes))
        await self._persist("trades")
        return record

    async def delete_trade(self, trade_id: str) -> TradeRecord:
        record = self._store.delete(trade_id)
        logger.info("trade_deleted", trade_id=trade_id)
        await self._persist("trades")
        return record

    async def set_deposit(self, month_key: str, amount: Decimal | float | str) -> MonthlyDeposit:
        entry = self._deposits.set(month_key, amount)
        logger.info("deposit_set", month=month_key, deposit=entry.deposit)
        await self._persist("deposits")
        return entry

    async def update_settings(self, **changes: Any) -> AccountSettings:
        self._settings = self._settings.with_changes(**changes)
        logger.info("settings_updated", fields=sorted(changes))
        await self._persist("settings")
        return self._settings

    async def import_snapshot(self, raw: str | bytes | Mapping[str, Any]) -> None:
        """Replace the whole ledger with a snapshot, or change nothing.

        Raises ``SnapshotFormatError`` before touching state when the
        snapshot is malformed.
        """
        snapshot = parse_snapshot(raw)
        self._store.replace_all(snapshot.trades)
        self._deposits.replace_all(snapshot.monthly_deposits)
        if snapshot.settings is not None:
            self._settings = snapshot.settings
        logger.info(
            "snapshot_imported",
            trades=len(snapshot.trades),
            deposit_months=len(snapshot.monthly_deposits),
            exported_at=str(snapshot.export_date),
        )
        await self._persist(*_ALL)

    def export_snapshot(self, *, exported_at: datetime | None = None) -> str:
        return dump_snapshot(
            self._store.all(), self._deposits.as_dict(), self._settings, exported_at=exported_at
        )

    def snapshot_dict(self, *, exported_at: datetime | None = None) -> dict[str, Any]:
        return snapshot_to_dict(
            self._store.all(), self._deposits.as_dict(), self._settings, exported_at=exported_at
        )

    # ------------------------------------------------------------------ #
    # Derived values                                                       #
    # ------------------------------------------------------------------ #

    def resolver(self) -> BalanceResolver:
        return BalanceResolver(
            self._store.all(), self._deposits, self._settings, clock=self._clock
        )

    def starting_balance(self, month_key: str) -> Decimal:
        return self.resolver().starting_balance(month_key)

    def ending_balance(self, month_key: str) -> Decimal:
        return self.resolver().ending_balance(month_key)

    def timeline(self, start: str | None = None, end: str | None = None) -> list[MonthBalance]:
        return self.resolver().timeline(start, end)

    def month_stats(self, month_key: str | None = None) -> StatsBundle:
        """Statistics for one month (the current month by default)."""
        month_key = month_key or self.current_month()
        resolver = self.resolver()
        return compute_stats(
            self.month_trades(month_key),
            resolver.starting_balance(month_key),
            resolver.deposit(month_key),
        )

    def all_time_stats(self) -> StatsBundle:
        """Statistics over every trade, opening from the initial balance."""
        return compute_stats(
            self._store.all(),
            self._settings.initial_account_balance,
            self._deposits.total(),
        )

    def total_balance(self) -> TotalBalance:
        return compute_total_balance(
            self._store.all(), self._deposits, self._settings.initial_account_balance
        )

    def equity_curve(self, month_key: str | None = None) -> list[EquityPoint]:
        """Running balance through a month's trades, from its operating capital."""
        month_key = month_key or self.current_month()
        resolver = self.resolver()
        operating = resolver.starting_balance(month_key) + resolver.deposit(month_key)
        return equity_curve(self.month_trades(month_key), operating)

    def risk_budget(self) -> RiskBudget:
        return risk_budget(self._settings)

    # ------------------------------------------------------------------ #
    # Persistence                                                          #
    # ------------------------------------------------------------------ #

    def _can_fall_back(self) -> bool:
        return self._fallback is not None and not self._using_fallback

    def _switch_to_fallback(self, exc: PersistenceError) -> None:
        assert self._fallback is not None
        logger.warning(
            "persistence_fallback",
            failed_backend=exc.backend,
            reason=exc.reason,
            fallback=self._fallback.name,
        )
        self._notify(
            NoticeLevel.WARNING,
            f"{exc.backend} storage unavailable ({exc.reason}); using {self._fallback.name} storage",
        )
        self._backend = self._fallback
        self._using_fallback = True

    async def _persist(self, *collections: str) -> None:
        try:
            await self._save(self._backend, collections)
        except PersistenceError as exc:
            if not self._can_fall_back():
                logger.error("persistence_failed", backend=exc.backend, reason=exc.reason)
                self._notify(NoticeLevel.ERROR, f"Could not save ledger: {exc.reason}")
                raise
            self._switch_to_fallback(exc)
            # Write everything so the fallback copy is complete, not just this change.
            try:
                await self._save(self._backend, _ALL)
            except PersistenceError as fallback_exc:
                logger.error(
                    "persistence_failed", backend=fallback_exc.backend, reason=fallback_exc.reason
                )
                self._notify(NoticeLevel.ERROR, f"Could not save ledger: {fallback_exc.reason}")
                raise

    async def _save(self, backend: ILedgerBackend, collections: tuple[str, ...]) -> None:
        if "trades" in collections:
            await backend.save_trades(self._store.all())
        if "deposits" in collections:
            await backend.save_deposits(self._deposits.as_dict())
        if "settings" in collections:
            await backend.save_settings(self._settings)

    def _notify(self, level: NoticeLevel, message: str) -> None:
        self.notices.append(Notice(level=level, message=message))

    def drain_notices(self) -> list[Notice]:
        """Return and clear pending notices."""
        notices, self.notices = self.notices, []
        return notices
