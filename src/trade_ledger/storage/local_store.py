"""Local JSON-file backend.

Keeps the ledger on the user's own machine as three JSON files under a data
directory:

- ``trades.json``            list of trade records
- ``monthly_deposits.json``  ``{"YYYY-MM": {"deposit": "..."}}``
- ``settings.json``          account settings (camelCase keys)

A missing file means "nothing saved yet".  A file that exists but can't be
parsed or validated is reported as a ``PersistenceError`` instead of being
silently treated as empty, so a corrupt file is never overwritten by an
empty ledger on the next load.

File reads and writes run in a worker thread via ``asyncio.to_thread``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from trade_ledger.core.errors import PersistenceError, TradeValidationError
from trade_ledger.core.file_io import read_text_or_none, safe_write_text
from trade_ledger.core.models import AccountSettings, MonthlyDeposit, TradeRecord, validate_model
from trade_ledger.ledger.store import parse_deposits, parse_trades

logger = logging.getLogger(__name__)

TRADES_FILE = "trades.json"
DEPOSITS_FILE = "monthly_deposits.json"
SETTINGS_FILE = "settings.json"


class LocalJsonBackend:
    """File-backed ledger storage.

    Parameters
    ----------
    data_dir:
        Directory holding the JSON files.  Created on first save.
    """

    def __init__(self, data_dir: str | Path = "data") -> None:
        self._dir = Path(data_dir)

    @property
    def name(self) -> str:
        return "local"

    @property
    def data_dir(self) -> Path:
        return self._dir

    # -- Load ----------------------------------------------------------------

    async def load_trades(self) -> list[TradeRecord]:
        raw = await asyncio.to_thread(self._read_json, TRADES_FILE)
        if raw is None:
            return []
        return self._parse(TRADES_FILE, parse_trades, raw)

    async def load_deposits(self) -> dict[str, MonthlyDeposit]:
        raw = await asyncio.to_thread(self._read_json, DEPOSITS_FILE)
        if raw is None:
            return {}
        return self._parse(DEPOSITS_FILE, parse_deposits, raw)

    async def load_settings(self) -> AccountSettings:
        raw = await asyncio.to_thread(self._read_json, SETTINGS_FILE)
        if raw is None:
            return AccountSettings()
        return self._parse(
            SETTINGS_FILE, lambda data: validate_model(AccountSettings, data, "settings"), raw
        )

    # -- Save ----------------------------------------------------------------

    async def save_trades(self, trades: list[TradeRecord]) -> None:
        payload = [t.model_dump(mode="json") for t in trades]
        await asyncio.to_thread(self._write_json, TRADES_FILE, payload)

    async def save_deposits(self, deposits: dict[str, MonthlyDeposit]) -> None:
        await asyncio.to_thread(
            self._write_json,
            DEPOSITS_FILE,
            {k: v.model_dump(mode="json") for k, v in sorted(deposits.items())},
        )

    async def save_settings(self, settings: AccountSettings) -> None:
        payload = settings.model_dump(mode="json", by_alias=True)
        await asyncio.to_thread(self._write_json, SETTINGS_FILE, payload)

    # -- Helpers -------------------------------------------------------------

    def _read_json(self, filename: str) -> Any:
        path = self._dir / filename
        try:
            text = read_text_or_none(path)
        except OSError as exc:
            raise PersistenceError(self.name, f"cannot read {path}: {exc}") from exc
        if text is None:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise PersistenceError(self.name, f"{path} is not valid JSON: {exc}") from exc

    def _parse(self, filename: str, parser, raw: Any):
        try:
            return parser(raw)
        except TradeValidationError as exc:
            raise PersistenceError(self.name, f"{self._dir / filename}: {exc}") from exc

    def _write_json(self, filename: str, payload: Any) -> None:
        path = self._dir / filename
        try:
            safe_write_text(path, json.dumps(payload, indent=2))
        except OSError as exc:
            raise PersistenceError(self.name, f"cannot write {path}: {exc}") from exc
        logger.debug("Wrote %s", path)
