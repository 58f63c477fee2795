"""Safe file I/O utilities.

Provides atomic replace-on-write for JSON files with file locking
(``fcntl``) and ``fsync`` so a crash mid-save never leaves a truncated file.
"""

from __future__ import annotations

import fcntl
import os
import tempfile
from pathlib import Path


def safe_write_text(path: Path, text: str) -> None:
    """Replace the contents of *path* with *text* atomically.

    * The text is written to a temp file in the same directory, flushed and
      ``fsync``-ed, then moved over *path* with ``os.replace``.
    * An exclusive ``fcntl`` lock on ``<path>.lock`` serialises concurrent
      writers of the same file.
    * Parent directories are created as needed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    lock_path = path.with_name(path.name + ".lock")
    with open(lock_path, "a") as lock:
        fcntl.flock(lock.fileno(), fcntl.LOCK_EX)
        try:
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(text)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        finally:
            fcntl.flock(lock.fileno(), fcntl.LOCK_UN)


def read_text_or_none(path: Path) -> str | None:
    """Return the file's text, or ``None`` when it does not exist."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
