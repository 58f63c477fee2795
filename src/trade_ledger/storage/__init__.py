"""Ledger persistence backends."""

from .factory import build_backend, build_fallback
from .local_store import LocalJsonBackend
from .remote_store import RemoteRestBackend

__all__ = [
    "LocalJsonBackend",
    "RemoteRestBackend",
    "build_backend",
    "build_fallback",
]
