"""Application configuration: where the ledger is stored and how it logs.

Values come from an optional TOML file and ``TRADE_LEDGER_*`` environment
variables (nested with ``__``), validated by pydantic-settings.  A key set in
the file or in explicit overrides wins over the same key in the environment.
The remote API key is never stored in the file, only the name of the env var
holding it.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings

from .enums import StorageBackend
from .errors import ConfigError


# ---------------------------------------------------------------------------
# Sub-configs
# ---------------------------------------------------------------------------

class StorageConfig(BaseModel):
    backend: StorageBackend = StorageBackend.LOCAL
    data_dir: str = "data"  # Local JSON files live here
    remote_url: str = ""  # e.g. https://<project>.supabase.co
    remote_key_env: str = "TRADE_LEDGER_REMOTE_KEY"  # Name of env var holding the API key
    timeout_seconds: float = 10.0

    @property
    def remote_key(self) -> str:
        return os.environ.get(self.remote_key_env, "")

    @property
    def is_remote_configured(self) -> bool:
        return bool(self.remote_url.strip() and self.remote_key.strip())


class ObservabilityConfig(BaseModel):
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"


# ---------------------------------------------------------------------------
# Top-level settings
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """Runtime settings for the ledger tools.

    Per-account settings (initial balance, risk sizing) are ledger data,
    not configuration; see ``AccountSettings``.
    """

    storage: StorageConfig = Field(default_factory=StorageConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    model_config = {"env_prefix": "TRADE_LEDGER_", "env_nested_delimiter": "__"}


def load_settings(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """Build ``Settings`` from *config_path*, *overrides* and the environment.

    Args:
        config_path: Path to TOML config file (optional; ignored if missing).
        overrides: Dict of overrides to apply on top.
    """
    data: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            import tomli

            try:
                with open(path, "rb") as f:
                    data = tomli.load(f)
            except tomli.TOMLDecodeError as exc:
                raise ConfigError(f"Invalid config file {path}: {exc}") from exc

    if overrides:
        for key, value in overrides.items():
            if isinstance(value, dict) and isinstance(data.get(key), dict):
                data[key] = {**data[key], **value}
            else:
                data[key] = value

    try:
        return Settings(**data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
