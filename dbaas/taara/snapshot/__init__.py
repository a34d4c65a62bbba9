"""
Snapshot data model for taara.

- SnapshotIdentifier: names a snapshot (tables + capture time)
- StorageMetadata: the persisted record stored next to each snapshot
"""

from .identifier import DATE_FORMAT, TABLE_SEPARATOR, SnapshotIdentifier, parse_identifier
from .metadata import StorageMetadata

__all__ = [
    "DATE_FORMAT",
    "TABLE_SEPARATOR",
    "SnapshotIdentifier",
    "StorageMetadata",
    "parse_identifier",
]
