"""Backend selection from configuration."""

from __future__ import annotations

import logging

from trade_ledger.core.config import Settings
from trade_ledger.core.enums import StorageBackend
from trade_ledger.core.interfaces import ILedgerBackend

from .local_store import LocalJsonBackend
from .remote_store import RemoteRestBackend

logger = logging.getLogger(__name__)


def build_backend(settings: Settings) -> ILedgerBackend:
    """Return the configured backend.

    The remote backend is used only when it is selected *and* both its URL
    and API key are present; anything else falls back to local files.
    """
    storage = settings.storage
    if storage.backend == StorageBackend.REMOTE:
        if storage.is_remote_configured:
            return RemoteRestBackend(
                storage.remote_url,
                storage.remote_key,
                timeout=storage.timeout_seconds,
            )
        logger.warning(
            "Remote storage selected but not configured (url=%r, key env %s); "
            "using local files in %s",
            storage.remote_url,
            storage.remote_key_env,
            storage.data_dir,
        )
    return LocalJsonBackend(storage.data_dir)


def build_fallback(settings: Settings, primary: ILedgerBackend) -> LocalJsonBackend | None:
    """Local backend used when *primary* fails.

    ``None`` when *primary* already is local storage, since a second
    instance would only retry the same files.
    """
    if isinstance(primary, LocalJsonBackend):
        return None
    return LocalJsonBackend(settings.storage.data_dir)
