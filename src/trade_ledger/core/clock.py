"""Clock abstraction for "what month is it now".

WallClock: real wall-clock time
FixedClock: frozen time for tests and reproducible reports

Ledger code never calls datetime.now() directly when it needs the current
month; it asks a clock.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


class IClock(Protocol):
    """Clock interface used by all time-dependent code."""

    def now(self) -> datetime:
        """Current time as timezone-aware UTC datetime."""
        ...


class WallClock:
    """Real wall-clock time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Clock pinned to a single instant.

    Time moves only when explicitly set.
    """

    def __init__(self, at: datetime | None = None) -> None:
        self._time = at or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._time

    def set_time(self, t: datetime) -> None:
        self._time = t
