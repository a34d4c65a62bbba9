"""
Database engines for taara.

A database engine turns a set of tables into a local dump file and back:
- PostgresEngine: pg_dump / pg_restore (custom archive format)
- SqliteEngine: tenant shard databases stored as SQLite files

Invariants:
    - Engines only read and write local files; storage is not their concern
    - Failures raise DumpFailedError / RestoreFailedError
"""

from .base import DatabaseEngine, create_database_engine
from .postgres import PostgresEngine
from .sqlite import SqliteEngine

__all__ = [
    "DatabaseEngine",
    "create_database_engine",
    "PostgresEngine",
    "SqliteEngine",
]
