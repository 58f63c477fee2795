"""Custom exception hierarchy for the trade ledger."""


class LedgerError(Exception):
    """Base exception for all trade ledger errors."""


# --- Configuration ---
class ConfigError(LedgerError):
    """Invalid or missing configuration."""


# --- Validation ---
class TradeValidationError(LedgerError, ValueError):
    """A trade, deposit, or settings payload failed validation.

    Raised before anything is written to the in-memory ledger.
    """

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors = errors or []
        super().__init__(message)


class TradeNotFoundError(LedgerError, KeyError):
    """No trade with the requested id exists in the store."""

    def __init__(self, trade_id: str):
        self.trade_id = trade_id
        super().__init__(f"Trade not found: {trade_id}")

    def __str__(self) -> str:
        return self.args[0]


# --- Persistence ---
class PersistenceError(LedgerError):
    """A storage backend could not load or save ledger data."""

    def __init__(self, backend: str, reason: str):
        self.backend = backend
        self.reason = reason
        super().__init__(f"Persistence failure [{backend}]: {reason}")


# --- Import / export ---
class SnapshotFormatError(LedgerError):
    """A ledger snapshot is malformed and was rejected as a whole."""
