"""
Scratch file management for dump/restore pipelines.

Dumps are written to, and downloads land in, uniquely named paths inside a
process-wide temporary directory. The directory can be overridden once at
start-up (CLI flag or TAARA_TEMP_DIR); it is read, not mutated, while an
operation runs.

Invariants:
    - A temporary path is owned by exactly one orchestrator call
    - The path is removed when the owning scope exits, whatever the outcome
    - Cleanup failures never mask the primary error
"""

from __future__ import annotations

import logging
import os
import tempfile
import uuid
from contextlib import contextmanager
from typing import Iterator, Optional

logger = logging.getLogger(__name__)

_temp_dir: Optional[str] = None


def set_temp_dir(path: Optional[str]) -> None:
    """Override where scratch files are created (None restores the default)."""
    global _temp_dir
    _temp_dir = str(path) if path is not None else None


def get_temp_dir() -> str:
    """Directory new scratch paths are allocated in."""
    return _temp_dir if _temp_dir is not None else tempfile.gettempdir()


def allocate_path(prefix: str = "taara-") -> str:
    """Return a unique path in the temporary directory; nothing is created."""
    return os.path.join(get_temp_dir(), f"{prefix}{uuid.uuid4().hex}")


@contextmanager
def temporary_path(prefix: str = "taara-") -> Iterator[str]:
    """Yield a unique scratch path and remove it on exit.

    Example:
        >>> with temporary_path("taara-dump-") as path:
        ...     await db_engine.dump(["accounts"], path)
    """
    path = allocate_path(prefix)
    try:
        yield path
    finally:
        try:
            if os.path.lexists(path):
                os.unlink(path)
        except OSError as e:
            logger.debug(f"Could not remove temporary file {path}: {e}")
