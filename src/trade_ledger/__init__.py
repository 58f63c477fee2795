"""Personal trading-performance ledger."""

__version__ = "0.1.0"
