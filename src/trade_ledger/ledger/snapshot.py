"""Full-ledger snapshots for backup and restore.

A snapshot is plain JSON::

    {
      "settings": {...AccountSettings, camelCase keys...},
      "trades": [{...TradeRecord...}, ...],
      "monthlyDeposits": {"2024-01": {"deposit": "100"}, ...},
      "exportDate": "2024-02-01T10:00:00+00:00"
    }

``parse_snapshot`` validates everything before returning, so a caller can
replace its state in one step or not at all.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Mapping

from trade_ledger.core.errors import SnapshotFormatError, TradeValidationError
from trade_ledger.core.ids import utc_now
from trade_ledger.core.models import AccountSettings, MonthlyDeposit, TradeRecord, validate_model

from .store import parse_deposits, parse_trades

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerSnapshot:
    trades: list[TradeRecord]
    monthly_deposits: dict[str, MonthlyDeposit]
    settings: AccountSettings | None = None  # None: keep current settings on import
    export_date: datetime | None = None
    extra: dict[str, Any] = field(default_factory=dict)


def snapshot_to_dict(
    trades: Iterable[TradeRecord],
    deposits: Mapping[str, MonthlyDeposit],
    settings: AccountSettings,
    *,
    exported_at: datetime | None = None,
) -> dict[str, Any]:
    """Build the JSON-ready snapshot structure."""
    return {
        "settings": settings.model_dump(mode="json", by_alias=True),
        "trades": [t.model_dump(mode="json") for t in trades],
        "monthlyDeposits": {
            key: entry.model_dump(mode="json") for key, entry in sorted(deposits.items())
        },
        "exportDate": (exported_at or utc_now()).isoformat(),
    }


def dump_snapshot(
    trades: Iterable[TradeRecord],
    deposits: Mapping[str, MonthlyDeposit],
    settings: AccountSettings,
    *,
    exported_at: datetime | None = None,
    indent: int = 2,
) -> str:
    data = snapshot_to_dict(trades, deposits, settings, exported_at=exported_at)
    return json.dumps(data, indent=indent)


def parse_snapshot(raw: str | bytes | Mapping[str, Any]) -> LedgerSnapshot:
    """Validate a snapshot.

    Raises
    ------
    SnapshotFormatError
        If the payload is not JSON, ``trades`` is not a list,
        ``monthlyDeposits`` is not a mapping, or any record fails validation.
    """
    if isinstance(raw, (str, bytes)):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise SnapshotFormatError(f"Snapshot is not valid JSON: {exc}") from exc
    else:
        data = raw

    if not isinstance(data, Mapping):
        raise SnapshotFormatError("Snapshot must be a JSON object")
    if not isinstance(data.get("trades"), list):
        raise SnapshotFormatError("Snapshot 'trades' must be a list")
    if not isinstance(data.get("monthlyDeposits"), Mapping):
        raise SnapshotFormatError("Snapshot 'monthlyDeposits' must be a mapping")

    try:
        trades = parse_trades(data["trades"])
        deposits = parse_deposits(data["monthlyDeposits"])
        settings = None
        if data.get("settings") is not None:
            settings = validate_model(AccountSettings, data["settings"], "settings")
    except TradeValidationError as exc:
        raise SnapshotFormatError(f"Snapshot rejected: {exc}") from exc

    export_date = None
    if data.get("exportDate"):
        try:
            export_date = datetime.fromisoformat(str(data["exportDate"]).replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Ignoring unparseable exportDate %r", data["exportDate"])

    known = {"settings", "trades", "monthlyDeposits", "exportDate"}
    return LedgerSnapshot(
        trades=trades,
        monthly_deposits=deposits,
        settings=settings,
        export_date=export_date,
        extra={k: v for k, v in data.items() if k not in known},
    )
