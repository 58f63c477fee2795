"""Enumerations used across the trade ledger."""

from enum import Enum


class Direction(str, Enum):
    LONG = "Long"
    SHORT = "Short"


class TradeOutcome(str, Enum):
    """Win / loss / break-even classification (by balance before commission)."""

    WIN = "win"
    LOSS = "loss"
    BREAKEVEN = "breakeven"


class StorageBackend(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


class NoticeLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
