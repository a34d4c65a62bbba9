"""
Path-based storage engine.

Every backend that stores snapshots as files (a directory tree, an object
store bucket, a dict in memory) shares the same layout:

    <root>/metadata/<identifier>.metadata
    <root>/snapshot/<identifier>.snapshot

PathStorageEngine implements the StorageEngine protocol once, on top of a
small set of primitives supplied by a PathOperations value. A new backend only
implements the primitives.

Invariants:
    - Keys are derived only from the root, the folder and the identifier
    - Primitive failures surface as StorageError (NotFoundError if missing)
    - save_snapshot streams from the local file; it never buffers it whole
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from contextlib import contextmanager
from typing import BinaryIO, Iterator, List, Optional, Protocol, Union

from ..errors import StorageError, TaaraError
from ..snapshot import SnapshotIdentifier, StorageMetadata, parse_identifier
from .base import (
    METADATA_EXTENSION,
    METADATA_FOLDER,
    SNAPSHOT_EXTENSION,
    SNAPSHOT_FOLDER,
    FileDescriptor,
)

logger = logging.getLogger(__name__)


class PathOperations(Protocol):
    """Primitive file operations a path-based backend must provide.

    Attributes:
        root_path: Directory or key prefix all entries live under
    """

    root_path: str

    @abstractmethod
    def join(self, *parts: str) -> str:
        """Join path components using the backend's separator rules."""
        ...

    @abstractmethod
    async def list_directory(self, prefix: str) -> List[FileDescriptor]:
        """List files directly under prefix.

        Sub-directories and names without an extension are excluded.
        A missing directory lists as empty.
        """
        ...

    @abstractmethod
    async def read_all(self, key: str) -> bytes:
        """Read an entry fully. Raises NotFoundError if absent."""
        ...

    @abstractmethod
    async def copy_to_local(self, key: str, destination: str) -> str:
        """Make an entry available on local disk and return the local path."""
        ...

    @abstractmethod
    async def write_data(self, key: str, data: Union[bytes, BinaryIO]) -> None:
        """Write bytes or the contents of a readable binary stream to key."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete an entry. Raises NotFoundError if absent."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release resources held by the backend."""
        ...


@contextmanager
def storage_errors(action: str, key: str) -> Iterator[None]:
    """Wrap unexpected backend exceptions into StorageError."""
    try:
        yield
    except TaaraError:
        raise
    except Exception as e:
        raise StorageError(f"Failed to {action} {key}: {e}", key=key) from e


class PathStorageEngine:
    """StorageEngine built from PathOperations primitives.

    Attributes:
        operations: Backend primitives

    Example:
        >>> engine = PathStorageEngine(FileSystemOperations("/var/lib/taara"))
        >>> identifiers = await engine.list()
    """

    def __init__(self, operations: PathOperations) -> None:
        self.operations = operations

    @property
    def root_path(self) -> str:
        return self.operations.root_path

    def path(
        self,
        folder: str,
        identifier: Optional[SnapshotIdentifier] = None,
        extension: str = SNAPSHOT_EXTENSION,
    ) -> str:
        """Key of a folder, or of an identifier's entry inside it."""
        if identifier is None:
            return self.operations.join(self.root_path, folder)
        return self.operations.join(self.root_path, folder, identifier.filename(extension))

    def metadata_path(self, identifier: SnapshotIdentifier) -> str:
        return self.path(METADATA_FOLDER, identifier, METADATA_EXTENSION)

    def snapshot_path(self, identifier: SnapshotIdentifier) -> str:
        return self.path(SNAPSHOT_FOLDER, identifier, SNAPSHOT_EXTENSION)

    async def list(self) -> List[SnapshotIdentifier]:
        prefix = self.path(METADATA_FOLDER)
        with storage_errors("list", prefix):
            files = await self.operations.list_directory(prefix)
        return [parse_identifier(f.name) for f in files if f.extension == METADATA_EXTENSION]

    async def load_metadata(self, identifier: SnapshotIdentifier) -> StorageMetadata:
        key = self.metadata_path(identifier)
        with storage_errors("read", key):
            document = await self.operations.read_all(key)
        return StorageMetadata.from_json(document)

    async def save_metadata(self, metadata: StorageMetadata) -> StorageMetadata:
        key = self.metadata_path(metadata.identifier)
        with storage_errors("write", key):
            await self.operations.write_data(key, metadata.to_json().encode("utf-8"))
        logger.debug("Saved snapshot metadata", extra={"key": key})
        return metadata

    async def load_snapshot(self, identifier: SnapshotIdentifier, destination: str) -> str:
        key = self.snapshot_path(identifier)
        with storage_errors("load", key):
            local_path = await self.operations.copy_to_local(key, destination)
        logger.debug("Loaded snapshot", extra={"key": key, "local_path": local_path})
        return local_path

    async def save_snapshot(self, identifier: SnapshotIdentifier, source: str) -> None:
        key = self.snapshot_path(identifier)
        with storage_errors("upload", key):
            with open(source, "rb") as f:
                await self.operations.write_data(key, f)
        logger.debug("Saved snapshot", extra={"key": key, "source": source})

    async def delete_metadata(self, identifier: SnapshotIdentifier) -> None:
        key = self.metadata_path(identifier)
        with storage_errors("delete", key):
            await self.operations.delete(key)

    async def delete_snapshot(self, identifier: SnapshotIdentifier) -> None:
        key = self.snapshot_path(identifier)
        with storage_errors("delete", key):
            await self.operations.delete(key)

    async def close(self) -> None:
        await self.operations.close()

    async def __aenter__(self) -> PathStorageEngine:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} root={self.root_path!r}>"
