"""Protocol interfaces for the trade ledger.

Storage boundaries are defined here as Protocol classes.  Backends
(local files, remote table store) are swapped by configuration without
changing callers.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .models import AccountSettings, MonthlyDeposit, TradeRecord


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

@runtime_checkable
class ILedgerBackend(Protocol):
    """Load/save of the three ledger collections.

    Every method may raise ``PersistenceError``.  Saves replace the stored
    collection with the one given.
    """

    @property
    def name(self) -> str: ...

    async def load_trades(self) -> list[TradeRecord]: ...

    async def load_deposits(self) -> dict[str, MonthlyDeposit]: ...

    async def load_settings(self) -> AccountSettings: ...

    async def save_trades(self, trades: list[TradeRecord]) -> None: ...

    async def save_deposits(self, deposits: dict[str, MonthlyDeposit]) -> None: ...

    async def save_settings(self, settings: AccountSettings) -> None: ...
