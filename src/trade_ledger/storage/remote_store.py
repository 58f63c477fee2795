"""Remote backend over a PostgREST-style table API (e.g. Supabase).

Tables
------
``trades``
    One row per trade record (``id`` primary key).
``app_settings``
    Key/value rows: ``id="main"`` holds account settings and
    ``id="monthly_deposits"`` holds the deposit mapping, both in a JSON
    ``settings`` column.

Saves replace the remote collection: all rows are upserted, then rows whose
id is no longer present are deleted.  No call is retried; any transport error
or HTTP status >= 400 surfaces as ``PersistenceError`` and the caller decides
what to do.

Usage::

    async with RemoteRestBackend(url, api_key) as backend:
        trades = await backend.load_trades()
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from trade_ledger.core.errors import PersistenceError, TradeValidationError
from trade_ledger.core.models import AccountSettings, MonthlyDeposit, TradeRecord, validate_model
from trade_ledger.ledger.store import parse_deposits, parse_trades

logger = logging.getLogger(__name__)

_TRADES_TABLE = "trades"
_SETTINGS_TABLE = "app_settings"
_SETTINGS_ROW = "main"
_DEPOSITS_ROW = "monthly_deposits"


class RemoteRestBackend:
    """Ledger storage in a remote table store.

    Parameters
    ----------
    base_url:
        Project URL; requests go to ``<base_url>/rest/v1/<table>``.
    api_key:
        Sent as both the ``apikey`` header and a bearer token.
    client:
        Optional pre-built ``httpx.AsyncClient`` (tests inject one with a
        ``MockTransport``).  Created lazily otherwise.
    timeout:
        HTTP request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._base_url = base_url.rstrip("/") + "/rest/v1"
        self._api_key = api_key
        self._timeout = timeout
        self._client = client

    @property
    def name(self) -> str:
        return "remote"

    # -- Lifecycle -----------------------------------------------------------

    async def open(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> RemoteRestBackend:
        await self.open()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # -- Load ----------------------------------------------------------------

    async def load_trades(self) -> list[TradeRecord]:
        rows = await self._request(
            "GET", _TRADES_TABLE, params={"select": "*", "order": "date.desc"}
        )
        return self._parse("trades", parse_trades, rows or [])

    async def load_deposits(self) -> dict[str, MonthlyDeposit]:
        payload = await self._load_setting_row(_DEPOSITS_ROW)
        if payload is None:
            return {}
        return self._parse("monthly deposits", parse_deposits, payload)

    async def load_settings(self) -> AccountSettings:
        payload = await self._load_setting_row(_SETTINGS_ROW)
        if payload is None:
            return AccountSettings()
        return self._parse(
            "settings", lambda data: validate_model(AccountSettings, data, "settings"), payload
        )

    # -- Save ----------------------------------------------------------------

    async def save_trades(self, trades: list[TradeRecord]) -> None:
        rows = [t.model_dump(mode="json") for t in trades]
        if rows:
            await self._request(
                "POST",
                _TRADES_TABLE,
                params={"on_conflict": "id"},
                json=rows,
                prefer="resolution=merge-duplicates,return=minimal",
            )
            keep = ",".join(f'"{t.id}"' for t in trades)
            delete_filter = f"not.in.({keep})"
        else:
            delete_filter = "not.is.null"
        await self._request(
            "DELETE", _TRADES_TABLE, params={"id": delete_filter}, prefer="return=minimal"
        )

    async def save_deposits(self, deposits: dict[str, MonthlyDeposit]) -> None:
        payload = {k: v.model_dump(mode="json") for k, v in sorted(deposits.items())}
        await self._save_setting_row(_DEPOSITS_ROW, payload)

    async def save_settings(self, settings: AccountSettings) -> None:
        await self._save_setting_row(
            _SETTINGS_ROW, settings.model_dump(mode="json", by_alias=True)
        )

    # -- Helpers -------------------------------------------------------------

    async def _load_setting_row(self, row_id: str) -> Any:
        rows = await self._request(
            "GET", _SETTINGS_TABLE, params={"select": "settings", "id": f"eq.{row_id}"}
        )
        if not rows:
            return None
        return rows[0].get("settings")

    async def _save_setting_row(self, row_id: str, payload: Any) -> None:
        await self._request(
            "POST",
            _SETTINGS_TABLE,
            params={"on_conflict": "id"},
            json=[{"id": row_id, "settings": payload}],
            prefer="resolution=merge-duplicates,return=minimal",
        )

    def _headers(self, prefer: str | None) -> dict[str, str]:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> Any:
        await self.open()
        url = f"{self._base_url}/{table}"
        try:
            resp = await self._client.request(
                method, url, params=params, json=json, headers=self._headers(prefer)
            )
        except httpx.HTTPError as exc:
            raise PersistenceError(self.name, f"{method} {table} failed: {exc}") from exc

        logger.debug("%s %s -> HTTP %s", method, table, resp.status_code)
        if resp.status_code >= 400:
            raise PersistenceError(
                self.name, f"{method} {table} returned HTTP {resp.status_code}: {resp.text[:200]}"
            )
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise PersistenceError(self.name, f"{method} {table} returned non-JSON body") from exc

    def _parse(self, what: str, parser, raw: Any):
        try:
            return parser(raw)
        except TradeValidationError as exc:
            raise PersistenceError(self.name, f"invalid remote {what}: {exc}") from exc
