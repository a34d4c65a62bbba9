"""
taara - table snapshots for sharded databases.

Takes point-in-time snapshots of a subset of a database's tables, stores them
with their metadata in a pluggable backend, and restores them later, so a
single shard can be recovered without a full database restore.

Architecture:
    ┌──────────────┐   dump / restore   ┌──────────────────┐
    │ Orchestrator │◀──────────────────▶│  DatabaseEngine  │
    │ store/restore│                    │ (Postgres/SQLite)│
    │ list/delete  │                    └──────────────────┘
    └──────┬───────┘
           │ save / load / list / delete
           ▼
    ┌──────────────────────────────────────────────────┐
    │        StorageEngine (PathStorageEngine)         │
    │   <root>/metadata/*.metadata  <root>/snapshot/*  │
    └──────────┬───────────────┬───────────────┬───────┘
               ▼               ▼               ▼
          filesystem          S3            memory

Invariants:
    - A snapshot is listed only while its metadata entry exists
    - Temporary dump files never outlive the operation that created them
    - Engines are passed explicitly to every operation

Example:
    >>> engine = FileSystemEngine("/var/lib/taara")
    >>> db = PostgresEngine(PostgresConfig(database="shard_7"))
    >>> meta = await store_snapshot(["accounts"], {"shard": 7}, engine, db)
    >>> await restore_snapshot(meta.identifier, engine, db)
"""

from ._version import __version__
from .database import DatabaseEngine, PostgresEngine, SqliteEngine
from .errors import (
    DumpFailedError,
    InvalidArgumentError,
    MalformedIdentifierError,
    MalformedMetadataError,
    NotFoundError,
    RestoreFailedError,
    SnapshotExistsError,
    StorageError,
    TaaraError,
)
from .orchestrator import (
    delete_snapshot,
    get_metadata,
    list_snapshots,
    restore_snapshot,
    store_snapshot,
)
from .snapshot import SnapshotIdentifier, StorageMetadata, parse_identifier
from .storage import FileSystemEngine, InMemoryStorageEngine, S3StorageEngine, StorageEngine
from .tempfiles import set_temp_dir

__all__ = [
    "__version__",
    # Operations
    "list_snapshots",
    "store_snapshot",
    "restore_snapshot",
    "delete_snapshot",
    "get_metadata",
    "set_temp_dir",
    # Data model
    "SnapshotIdentifier",
    "StorageMetadata",
    "parse_identifier",
    # Engines
    "StorageEngine",
    "FileSystemEngine",
    "S3StorageEngine",
    "InMemoryStorageEngine",
    "DatabaseEngine",
    "PostgresEngine",
    "SqliteEngine",
    # Errors
    "TaaraError",
    "InvalidArgumentError",
    "MalformedIdentifierError",
    "MalformedMetadataError",
    "StorageError",
    "NotFoundError",
    "DumpFailedError",
    "RestoreFailedError",
    "SnapshotExistsError",
]
