"""
Base protocol and types for snapshot storage.

This module defines the StorageEngine protocol that all backends must
implement, along with the FileDescriptor listing type and the backend factory.

Invariants:
    - Each snapshot has exactly one metadata entry and one snapshot entry
    - Entries live under <root>/metadata/ and <root>/snapshot/
    - All backends raise NotFoundError for missing entries on load and delete

How to change safely:
    - Protocol changes require updating all implementations
    - Run the shared backend test suite against every backend
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    List,
    Protocol,
    runtime_checkable,
)

from ..snapshot import SnapshotIdentifier, StorageMetadata

if TYPE_CHECKING:
    from ..config import TaaraConfig

METADATA_FOLDER = "metadata"
SNAPSHOT_FOLDER = "snapshot"
METADATA_EXTENSION = "metadata"
SNAPSHOT_EXTENSION = "snapshot"


@dataclass(frozen=True)
class FileDescriptor:
    """A file in a storage directory, split at its last dot.

    Attributes:
        name: File name without the extension
        extension: Extension without the dot
    """

    name: str
    extension: str

    @classmethod
    def from_filename(cls, filename: str) -> FileDescriptor | None:
        """Split a file name, or return None if it has no extension."""
        name, sep, extension = filename.rpartition(".")
        if not sep:
            return None
        return cls(name=name, extension=extension)


@runtime_checkable
class StorageEngine(Protocol):
    """Protocol for snapshot storage backends.

    Durability contract:
        - save_* returns only after the backend has stored the data
        - save_metadata overwrites any existing entry for the identifier

    Example:
        >>> engine = FileSystemEngine("/var/lib/taara")
        >>> await engine.save_snapshot(identifier, "/tmp/dump")
        >>> await engine.save_metadata(StorageMetadata(identifier))
        >>> await engine.list()
        [SnapshotIdentifier(tablenames=('accounts',), ...)]
    """

    @abstractmethod
    async def list(self) -> List[SnapshotIdentifier]:
        """List all stored snapshots (unordered).

        Raises:
            MalformedIdentifierError: If a metadata entry has an unparsable name
            StorageError: For backend failures
        """
        ...

    @abstractmethod
    async def load_metadata(self, identifier: SnapshotIdentifier) -> StorageMetadata:
        """Load the metadata record for a snapshot.

        Raises:
            NotFoundError: If no metadata entry exists
        """
        ...

    @abstractmethod
    async def save_metadata(self, metadata: StorageMetadata) -> StorageMetadata:
        """Persist a metadata record and return it unchanged."""
        ...

    @abstractmethod
    async def load_snapshot(self, identifier: SnapshotIdentifier, destination: str) -> str:
        """Make the snapshot bytes available on local disk.

        Args:
            identifier: Snapshot to load
            destination: Local path the backend may write to

        Returns:
            Local path holding the snapshot, which is either destination or,
            for local backends, the stored file itself

        Raises:
            NotFoundError: If no snapshot entry exists
        """
        ...

    @abstractmethod
    async def save_snapshot(self, identifier: SnapshotIdentifier, source: str) -> None:
        """Store the local file at source as the snapshot for identifier."""
        ...

    @abstractmethod
    async def delete_metadata(self, identifier: SnapshotIdentifier) -> None:
        """Delete a metadata entry. Raises NotFoundError if absent."""
        ...

    @abstractmethod
    async def delete_snapshot(self, identifier: SnapshotIdentifier) -> None:
        """Delete a snapshot entry. Raises NotFoundError if absent."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources."""
        ...


def create_storage_engine(config: "TaaraConfig") -> StorageEngine:
    """Factory function to create a storage engine from configuration.

    Args:
        config: taara configuration

    Returns:
        Appropriate StorageEngine implementation

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import StorageBackend
    from .filesystem import FileSystemEngine
    from .memory import InMemoryStorageEngine
    from .s3 import S3StorageEngine

    if config.storage.backend == StorageBackend.FILESYSTEM:
        return FileSystemEngine(config.storage.root_path)
    elif config.storage.backend == StorageBackend.S3:
        return S3StorageEngine(config.s3)
    elif config.storage.backend == StorageBackend.MEMORY:
        return InMemoryStorageEngine()
    else:
        raise ValueError(f"Unsupported storage backend: {config.storage.backend}")
