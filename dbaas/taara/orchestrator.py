"""
Snapshot orchestration.

Ties a DatabaseEngine (dump/restore) to a StorageEngine (persist/load):

    store:   dump -> temp file -> save_snapshot -> save_metadata
    restore: load_metadata -> load_snapshot -> temp file -> restore

Both engines are passed explicitly to every call; there is no process-wide
"current" engine.

Invariants:
    - Steps of one operation run strictly in order
    - The temp file of an operation is removed on every exit path, and a
      cleanup failure never replaces the original error
    - Any failed step aborts the operation; nothing is retried here
    - store does not roll back a saved snapshot if saving its metadata fails:
      the snapshot object is orphaned and callers must re-check via
      list_snapshots/get_metadata before retrying

How to change safely:
    - Keep the metadata write after the snapshot write, so a listed
      snapshot always has its data
    - Keep the metadata delete before the snapshot delete, so a listed
      snapshot always has its data
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import os
from typing import Any, Dict, Iterable, List, Union

from .database import DatabaseEngine
from .errors import (
    DumpFailedError,
    InvalidArgumentError,
    NotFoundError,
    RestoreFailedError,
    SnapshotExistsError,
    StorageError,
    TaaraError,
)
from .snapshot import SnapshotIdentifier, StorageMetadata
from .snapshot.identifier import as_tablenames
from .storage import StorageEngine
from .tempfiles import temporary_path

logger = logging.getLogger(__name__)

CHECKSUM_CHUNK_SIZE = 1024 * 1024  # 1MB


def _compute_checksum(path: str) -> str:
    """Compute SHA-256 checksum of a file."""
    sha256 = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHECKSUM_CHUNK_SIZE), b""):
            sha256.update(chunk)
    return f"sha256:{sha256.hexdigest()}"


def _check_user_metadata(user_metadata: Any) -> None:
    try:
        json.dumps(user_metadata)
    except (TypeError, ValueError) as e:
        raise InvalidArgumentError(
            f"User metadata is not JSON serializable: {e}", argument="user_metadata"
        ) from e


async def _ensure_unused(identifier: SnapshotIdentifier, storage_engine: StorageEngine) -> None:
    try:
        await storage_engine.load_metadata(identifier)
    except NotFoundError:
        return
    raise SnapshotExistsError(
        f"Snapshot {identifier} already exists", identifier=identifier.encode()
    )


def _collect_stats(path: str) -> Dict[str, Any]:
    return {
        "size_bytes": os.path.getsize(path),
        "checksum": _compute_checksum(path),
    }


async def list_snapshots(storage_engine: StorageEngine) -> List[SnapshotIdentifier]:
    """List all snapshots in a storage backend (unordered)."""
    return await storage_engine.list()


async def get_metadata(
    identifier: SnapshotIdentifier,
    storage_engine: StorageEngine,
) -> StorageMetadata:
    """Load the metadata record of a snapshot.

    Raises:
        NotFoundError: If the snapshot does not exist
    """
    return await storage_engine.load_metadata(identifier)


async def store_snapshot(
    tablenames: Union[str, Iterable[str]],
    user_metadata: Any,
    storage_engine: StorageEngine,
    db_engine: DatabaseEngine,
) -> StorageMetadata:
    """Snapshot tables and persist them with their metadata.

    Args:
        tablenames: Table, or tables, to snapshot
        user_metadata: Arbitrary JSON-serializable value stored verbatim
        storage_engine: Where to persist the snapshot
        db_engine: Database to dump from

    Returns:
        The persisted StorageMetadata

    Raises:
        InvalidArgumentError: If the table list is empty, a name is invalid or
            user_metadata is not JSON serializable
        SnapshotExistsError: If a snapshot of the same tables was stored
            within the same second
        DumpFailedError: If dumping the tables fails
        StorageError: If persisting the snapshot or its metadata fails
    """
    identifier = SnapshotIdentifier.create(as_tablenames(tablenames))
    _check_user_metadata(user_metadata)
    await _ensure_unused(identifier, storage_engine)
    loop = asyncio.get_event_loop()

    logger.info(
        "Storing snapshot",
        extra={"snapshot": identifier.encode(), "tables": list(identifier.tablenames)},
    )

    with temporary_path("taara-dump-") as dump_path:
        try:
            await db_engine.dump(list(identifier.tablenames), dump_path)
        except TaaraError:
            raise
        except Exception as e:
            table_string = ", ".join(f"'{t}'" for t in identifier.tablenames)
            raise DumpFailedError(f"Could not dump tables {table_string}: {e}", str(e)) from e

        try:
            stats = await loop.run_in_executor(None, _collect_stats, dump_path)
            await storage_engine.save_snapshot(identifier, dump_path)
            metadata = await storage_engine.save_metadata(
                StorageMetadata(identifier=identifier, stats=stats, metadata=user_metadata)
            )
        except TaaraError:
            raise
        except Exception as e:
            raise StorageError(f"Could not store snapshot {identifier}: {e}") from e

    logger.info(
        "Stored snapshot",
        extra={"snapshot": identifier.encode(), "size_bytes": stats["size_bytes"]},
    )
    return metadata


async def restore_snapshot(
    identifier: SnapshotIdentifier,
    storage_engine: StorageEngine,
    db_engine: DatabaseEngine,
) -> StorageMetadata:
    """Restore a snapshot into the database.

    Args:
        identifier: Snapshot to restore
        storage_engine: Where the snapshot is stored
        db_engine: Database to restore into

    Returns:
        The snapshot's StorageMetadata, as loaded before restoring

    Raises:
        NotFoundError: If the snapshot does not exist
        StorageError: If loading fails or the checksum does not match
        RestoreFailedError: If the database restore fails
    """
    metadata = await storage_engine.load_metadata(identifier)
    loop = asyncio.get_event_loop()

    logger.info("Restoring snapshot", extra={"snapshot": metadata.identifier.encode()})

    with temporary_path("taara-restore-") as download_path:
        try:
            local_path = await storage_engine.load_snapshot(metadata.identifier, download_path)

            expected = metadata.stats.get("checksum")
            if expected:
                actual = await loop.run_in_executor(None, _compute_checksum, local_path)
                if actual != expected:
                    raise StorageError(
                        f"Checksum mismatch for snapshot {metadata.identifier}: "
                        f"expected {expected}, got {actual}"
                    )
        except TaaraError:
            raise
        except Exception as e:
            raise StorageError(f"Could not load snapshot {metadata.identifier}: {e}") from e

        try:
            await db_engine.restore(local_path)
        except TaaraError:
            raise
        except Exception as e:
            raise RestoreFailedError(f"Could not restore dump: {e}", str(e)) from e

    logger.info("Restored snapshot", extra={"snapshot": metadata.identifier.encode()})
    return metadata


async def delete_snapshot(
    identifier: SnapshotIdentifier,
    storage_engine: StorageEngine,
) -> None:
    """Delete a snapshot's metadata, then its data.

    If the data delete fails after the metadata delete succeeded, the
    snapshot object is orphaned; it is not listed any more and is not
    cleaned up automatically.

    Raises:
        NotFoundError: If either half does not exist
    """
    await storage_engine.delete_metadata(identifier)
    await storage_engine.delete_snapshot(identifier)
    logger.info("Deleted snapshot", extra={"snapshot": identifier.encode()})
