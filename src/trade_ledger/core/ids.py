"""Identity and timestamp factories for ledger records.

Trade ids are opaque UUID v4 strings assigned when a trade is first stored;
they are never derived from trade content, so two identical fills logged
twice stay two records.

``created_at`` values are always timezone-aware UTC.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone


def new_id() -> str:
    """Fresh trade id."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)
