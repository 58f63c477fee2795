"""Tests for LocalJsonBackend and safe_write_text."""

from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path

import pytest

from trade_ledger.core.errors import PersistenceError
from trade_ledger.core.file_io import read_text_or_none, safe_write_text
from trade_ledger.core.interfaces import ILedgerBackend
from trade_ledger.core.models import AccountSettings
from trade_ledger.storage.local_store import (
    DEPOSITS_FILE,
    SETTINGS_FILE,
    TRADES_FILE,
    LocalJsonBackend,
)

from tests.conftest import make_deposits, make_settings, make_trade


class TestSafeWriteText:
    def test_creates_parent_directories(self, tmp_path: Path) -> None:
        path = tmp_path / "a" / "b" / "file.json"
        safe_write_text(path, "{}")
        assert path.read_text() == "{}"

    def test_replaces_contents(self, tmp_path: Path) -> None:
        path = tmp_path / "file.json"
        safe_write_text(path, "first version, much longer")
        safe_write_text(path, "second")
        assert path.read_text() == "second"

    def test_no_temp_files_left(self, tmp_path: Path) -> None:
        path = tmp_path / "file.json"
        safe_write_text(path, "x")
        leftovers = [p.name for p in tmp_path.iterdir() if p.name.startswith(".file.json.")]
        assert leftovers == []

    def test_read_missing(self, tmp_path: Path) -> None:
        assert read_text_or_none(tmp_path / "missing.json") is None


class TestLocalJsonBackend:
    def test_is_ledger_backend(self, tmp_path: Path) -> None:
        backend = LocalJsonBackend(tmp_path)
        assert isinstance(backend, ILedgerBackend)
        assert backend.name == "local"
        assert backend.data_dir == tmp_path

    @pytest.mark.asyncio
    async def test_empty_directory_gives_defaults(self, tmp_path: Path) -> None:
        backend = LocalJsonBackend(tmp_path / "fresh")
        assert await backend.load_trades() == []
        assert await backend.load_deposits() == {}
        assert await backend.load_settings() == AccountSettings()

    @pytest.mark.asyncio
    async def test_round_trip(self, tmp_path: Path) -> None:
        backend = LocalJsonBackend(tmp_path)
        trades = [make_trade("2024-01-02", "5.5", "0.25"), make_trade("2024-02-03", "-1")]
        deposits = make_deposits(**{"2024-02": "30", "2024-01": "70"})
        settings = make_settings("150", "2024-01")

        await backend.save_trades(trades)
        await backend.save_deposits(deposits)
        await backend.save_settings(settings)

        reopened = LocalJsonBackend(tmp_path)
        assert await reopened.load_trades() == trades
        assert await reopened.load_deposits() == deposits
        assert await reopened.load_settings() == settings

    @pytest.mark.asyncio
    async def test_file_layout(self, tmp_path: Path) -> None:
        backend = LocalJsonBackend(tmp_path)
        await backend.save_deposits(make_deposits(**{"2024-02": "30", "2024-01": "70"}))
        await backend.save_settings(make_settings("10"))

        deposits = json.loads((tmp_path / DEPOSITS_FILE).read_text())
        assert list(deposits) == ["2024-01", "2024-02"]
        assert deposits["2024-01"] == {"deposit": "70"}

        settings = json.loads((tmp_path / SETTINGS_FILE).read_text())
        assert settings["initialAccountBalance"] == "10"

    @pytest.mark.asyncio
    async def test_stored_final_result_is_not_trusted(self, tmp_path: Path) -> None:
        row = make_trade(balance="10", commission="1").model_dump(mode="json")
        row["final_result"] = "500"
        (tmp_path / TRADES_FILE).write_text(json.dumps([row]))
        trades = await LocalJsonBackend(tmp_path).load_trades()
        assert trades[0].final_result == Decimal("9")

    @pytest.mark.asyncio
    async def test_bare_number_deposits(self, tmp_path: Path) -> None:
        (tmp_path / DEPOSITS_FILE).write_text('{"2024-05": 25}')
        deposits = await LocalJsonBackend(tmp_path).load_deposits()
        assert deposits["2024-05"].deposit == Decimal("25")

    @pytest.mark.asyncio
    async def test_corrupt_json_raises(self, tmp_path: Path) -> None:
        (tmp_path / TRADES_FILE).write_text("[{broken")
        with pytest.raises(PersistenceError, match="not valid JSON") as exc_info:
            await LocalJsonBackend(tmp_path).load_trades()
        assert exc_info.value.backend == "local"

    @pytest.mark.asyncio
    async def test_invalid_record_raises(self, tmp_path: Path) -> None:
        row = make_trade().model_dump(mode="json")
        row["direction"] = "Sideways"
        (tmp_path / TRADES_FILE).write_text(json.dumps([row]))
        with pytest.raises(PersistenceError, match="direction"):
            await LocalJsonBackend(tmp_path).load_trades()

    @pytest.mark.asyncio
    async def test_unwritable_directory_raises(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        backend = LocalJsonBackend(blocker / "data")
        with pytest.raises(PersistenceError, match="cannot write"):
            await backend.save_trades([])


@pytest.mark.asyncio
async def test_file_access_runs_off_event_loop_thread(tmp_path: Path, monkeypatch) -> None:
    import threading

    import trade_ledger.storage.local_store as local_store

    loop_thread = threading.get_ident()
    seen: list[int] = []

    def recording_write(path, text):
        seen.append(threading.get_ident())
        safe_write_text(path, text)

    def recording_read(path):
        seen.append(threading.get_ident())
        return read_text_or_none(path)

    monkeypatch.setattr(local_store, "safe_write_text", recording_write)
    monkeypatch.setattr(local_store, "read_text_or_none", recording_read)

    backend = LocalJsonBackend(tmp_path)
    await backend.save_trades([make_trade()])
    assert len(await backend.load_trades()) == 1
    assert len(seen) == 2
    assert loop_thread not in seen
