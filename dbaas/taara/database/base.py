"""
Base protocol for database engines.

A database engine dumps a set of tables to a local file and restores such a
file into the database. The orchestrator never looks inside the dump.

Invariants:
    - dump() writes the complete artifact to the destination or raises
    - restore() either applies the whole dump or raises
    - Failures raise DumpFailedError / RestoreFailedError with the tool's
      diagnostic output
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Protocol, Sequence, runtime_checkable

if TYPE_CHECKING:
    from ..config import TaaraConfig


@runtime_checkable
class DatabaseEngine(Protocol):
    """Protocol for database dump/restore engines."""

    @abstractmethod
    async def dump(self, tablenames: Sequence[str], destination: str) -> None:
        """Dump tables into a local file.

        Args:
            tablenames: Tables to dump
            destination: Local path to write the dump to

        Raises:
            DumpFailedError: If the dump tool fails or cannot be started
        """
        ...

    @abstractmethod
    async def restore(self, source: str) -> None:
        """Restore a dump produced by dump().

        Args:
            source: Local path of the dump

        Raises:
            RestoreFailedError: If the restore tool fails or cannot be started
        """
        ...


def create_database_engine(config: "TaaraConfig") -> DatabaseEngine:
    """Factory function to create a database engine from configuration.

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import DatabaseBackend
    from .postgres import PostgresEngine
    from .sqlite import SqliteEngine

    if config.database.backend == DatabaseBackend.POSTGRES:
        return PostgresEngine(config.postgres)
    elif config.database.backend == DatabaseBackend.SQLITE:
        if not config.database.sqlite_path:
            raise ValueError("SQLITE_PATH is required for the sqlite database engine")
        return SqliteEngine(config.database.sqlite_path)
    else:
        raise ValueError(f"Unsupported database backend: {config.database.backend}")
