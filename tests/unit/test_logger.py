"""Test structured logging setup."""

import json
import logging
from decimal import Decimal

import pytest

from trade_ledger.observability.logger import get_logger, setup_logging


@pytest.fixture
def restore_logging():
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)


def test_json_output_renders_decimals(capsys, restore_logging):
    setup_logging("INFO", "json")
    get_logger("trade_ledger.test").info("deposit_set", month="2024-03", deposit=Decimal("12.50"))

    line = capsys.readouterr().err.strip().splitlines()[-1]
    entry = json.loads(line)
    assert entry["event"] == "deposit_set"
    assert entry["deposit"] == "12.50"
    assert entry["level"] == "info"
    assert entry["logger"] == "trade_ledger.test"


def test_level_filters(capsys, restore_logging):
    setup_logging("WARNING", "json")
    get_logger("trade_ledger.test").info("quiet")
    assert "quiet" not in capsys.readouterr().err


def test_httpx_kept_quiet(restore_logging):
    setup_logging("DEBUG", "console")
    assert logging.getLogger("httpx").level == logging.WARNING


def test_unknown_format():
    with pytest.raises(ValueError, match="log format"):
        setup_logging("INFO", "xml")
