"""In-memory trade store and monthly deposit ledger.

Every mutation of the ledger's collections goes through these two classes.
They validate input before touching state, so a rejected call leaves the
collections exactly as they were.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Iterable, Iterator, Mapping

from trade_ledger.core.errors import TradeNotFoundError, TradeValidationError
from trade_ledger.core.ids import new_id, utc_now
from trade_ledger.core.models import (
    MonthlyDeposit,
    TradeDraft,
    TradeRecord,
    validate_model,
)

from .months import is_month_key, month_key_of

logger = logging.getLogger(__name__)

# Fields a caller may never overwrite through update().
_IMMUTABLE_FIELDS = frozenset({"id", "created_at", "final_result"})


class TradeStore:
    """Insertion-ordered collection of trade records keyed by id.

    Order is never meaningful; consumers sort by ``date`` when they need to.
    """

    def __init__(self, trades: Iterable[TradeRecord] = ()) -> None:
        self._trades: dict[str, TradeRecord] = {}
        for trade in trades:
            self._insert(trade)

    # ------------------------------------------------------------------ #
    # Mutation                                                             #
    # ------------------------------------------------------------------ #

    def add(self, draft: TradeDraft | Mapping[str, Any]) -> TradeRecord:
        """Validate *draft* and store it as a new record with fresh identity."""
        draft = validate_model(TradeDraft, draft, "trade")
        record = TradeRecord(
            **draft.model_dump(),
            id=new_id(),
            created_at=utc_now(),
        )
        self._insert(record)
        logger.debug("Trade %s added (%s %s)", record.id, record.pair, record.date)
        return record

    def update(self, trade_id: str, changes: Mapping[str, Any]) -> TradeRecord:
        """Replace fields of an existing record; ``final_result`` is recomputed."""
        current = self.get(trade_id)
        data = current.model_dump(exclude={"final_result"})
        data.update({k: v for k, v in changes.items() if k not in _IMMUTABLE_FIELDS})
        record = validate_model(TradeRecord, data, "trade")
        self._trades[trade_id] = record
        return record

    def delete(self, trade_id: str) -> TradeRecord:
        if trade_id not in self._trades:
            raise TradeNotFoundError(trade_id)
        return self._trades.pop(trade_id)

    def replace_all(self, trades: Iterable[TradeRecord]) -> None:
        """Swap the whole collection; nothing changes if any id repeats."""
        fresh = TradeStore(trades)
        self._trades = fresh._trades

    def _insert(self, record: TradeRecord) -> None:
        if record.id in self._trades:
            raise TradeValidationError(f"Duplicate trade id: {record.id}")
        self._trades[record.id] = record

    # ------------------------------------------------------------------ #
    # Queries                                                              #
    # ------------------------------------------------------------------ #

    def get(self, trade_id: str) -> TradeRecord:
        try:
            return self._trades[trade_id]
        except KeyError:
            raise TradeNotFoundError(trade_id) from None

    def all(self) -> list[TradeRecord]:
        return list(self._trades.values())

    def in_month(self, month_key: str) -> list[TradeRecord]:
        return [t for t in self._trades.values() if month_key_of(t.date) == month_key]

    def __len__(self) -> int:
        return len(self._trades)

    def __iter__(self) -> Iterator[TradeRecord]:
        return iter(list(self._trades.values()))

    def __contains__(self, trade_id: object) -> bool:
        return trade_id in self._trades


class DepositLedger:
    """Mapping of month key to the capital deposited that month.

    A month with no entry has a deposit of zero.
    """

    def __init__(self, deposits: Mapping[str, MonthlyDeposit] | None = None) -> None:
        self._deposits: dict[str, MonthlyDeposit] = {}
        for month_key, entry in (deposits or {}).items():
            self._deposits[self._check_key(month_key)] = entry

    @staticmethod
    def _check_key(month_key: str) -> str:
        if not is_month_key(month_key):
            raise TradeValidationError(
                f"Invalid month key {month_key!r}, expected YYYY-MM"
            )
        return month_key

    def set(self, month_key: str, amount: Decimal | float | str) -> MonthlyDeposit:
        self._check_key(month_key)
        entry = validate_model(MonthlyDeposit, {"deposit": amount}, "deposit")
        self._deposits[month_key] = entry
        return entry

    def get(self, month_key: str) -> Decimal:
        entry = self._deposits.get(month_key)
        return entry.deposit if entry is not None else Decimal("0")

    def total(self) -> Decimal:
        return sum((e.deposit for e in self._deposits.values()), Decimal("0"))

    def as_dict(self) -> dict[str, MonthlyDeposit]:
        return dict(self._deposits)

    def replace_all(self, deposits: Mapping[str, MonthlyDeposit]) -> None:
        fresh = DepositLedger(deposits)
        self._deposits = fresh._deposits

    def __len__(self) -> int:
        return len(self._deposits)


def parse_deposits(raw: Mapping[str, Any]) -> dict[str, MonthlyDeposit]:
    """Validate a raw ``{"YYYY-MM": {"deposit": n}}`` mapping.

    Bare numbers are accepted in place of ``{"deposit": n}``.
    """
    if not isinstance(raw, Mapping):
        raise TradeValidationError("Monthly deposits must be a mapping")
    parsed: dict[str, MonthlyDeposit] = {}
    for month_key, entry in raw.items():
        DepositLedger._check_key(month_key)
        if not isinstance(entry, Mapping):
            entry = {"deposit": entry}
        parsed[month_key] = validate_model(MonthlyDeposit, entry, f"deposit for {month_key}")
    return parsed


def parse_trades(raw: Iterable[Any]) -> list[TradeRecord]:
    """Validate raw trade dicts (as stored or exported) into records."""
    if isinstance(raw, (str, bytes, Mapping)) or not isinstance(raw, Iterable):
        raise TradeValidationError("Trades must be a list")
    records = [validate_model(TradeRecord, item, "stored trade") for item in raw]
    seen: set[str] = set()
    for record in records:
        if record.id in seen:
            raise TradeValidationError(f"Duplicate trade id: {record.id}")
        seen.add(record.id)
    return records
