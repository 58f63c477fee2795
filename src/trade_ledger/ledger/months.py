"""Month keys: the ``YYYY-MM`` join key between trades, deposits and balances.

``month_key_of`` is the single canonical way to bucket a date into a month.
It reads the calendar fields of the value it is given and never converts
between time zones, so a trade dated the 1st can't drift into the previous
month.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Iterator

from trade_ledger.core.clock import IClock, WallClock
from trade_ledger.core.errors import TradeValidationError

_MONTH_KEY_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def month_key_of(value: date | datetime | str) -> str:
    """Return the ``YYYY-MM`` key for a date, datetime or ISO date string."""
    if isinstance(value, str):
        value = date.fromisoformat(value[:10])
    return f"{value.year:04d}-{value.month:02d}"


def is_month_key(value: object) -> bool:
    return isinstance(value, str) and bool(_MONTH_KEY_RE.match(value))


def validate_month_key(value: str) -> str:
    """Return *value* unchanged, or raise ``TradeValidationError`` if it is not ``YYYY-MM``.

    The error is also a ``ValueError``, so pydantic validators can call this.
    """
    if not is_month_key(value):
        raise TradeValidationError(f"Invalid month key {value!r}, expected YYYY-MM")
    return value


def _split(month_key: str) -> tuple[int, int]:
    validate_month_key(month_key)
    year, month = month_key.split("-")
    return int(year), int(month)


def previous_month(month_key: str) -> str:
    year, month = _split(month_key)
    if month == 1:
        return f"{year - 1:04d}-12"
    return f"{year:04d}-{month - 1:02d}"


def next_month(month_key: str) -> str:
    year, month = _split(month_key)
    if month == 12:
        return f"{year + 1:04d}-01"
    return f"{year:04d}-{month + 1:02d}"


def iter_months(start: str, end: str) -> Iterator[str]:
    """Yield every month key from *start* to *end*, both inclusive.

    Yields nothing when *end* is before *start*.
    """
    last = _split(end)
    current = start
    while _split(current) <= last:
        yield current
        if current == end:
            return
        current = next_month(current)


def current_month_key(clock: IClock | None = None) -> str:
    """Month key of "now" according to *clock* (wall clock by default)."""
    return month_key_of((clock or WallClock()).now())
