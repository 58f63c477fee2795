"""Structured logging for the ledger.

structlog renders on top of stdlib logging, so modules that log through
``logging.getLogger(__name__)`` and the tracker's structured events share one
stream on stderr.  ``console`` output is for people at a terminal, ``json``
for log collectors.
"""

from __future__ import annotations

import logging
import sys
from decimal import Decimal
from typing import Any

import structlog

# Third-party loggers that are chatty at INFO (httpx logs every request).
_NOISY_LOGGERS = ("httpx", "httpcore")


def _stringify_decimals(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Structlog processor: render Decimal amounts exactly."""
    for key, value in event_dict.items():
        if isinstance(value, Decimal):
            event_dict[key] = str(value)
    return event_dict


def _renderers(fmt: str) -> list[Any]:
    if fmt == "json":
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    if fmt != "console":
        raise ValueError(f"Unknown log format {fmt!r}, expected 'console' or 'json'")
    return [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]


def setup_logging(level: str = "INFO", format: str = "console") -> None:
    """Configure logging for the CLI or an embedding application.

    Safe to call more than once; the last call wins.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
        format: "console" or "json".
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _stringify_decimals,
            *_renderers(format),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level, force=True)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Structured logger for *name* (usually ``__name__``)."""
    return structlog.get_logger(name)
