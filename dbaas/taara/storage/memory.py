"""
In-memory storage backend for testing.

This module provides a storage backend that keeps every entry in a dict, for:
- Unit tests
- Orchestrator tests without disk or network access
- Local development and debugging

Invariants:
    - All data is lost on process exit
    - Behaves like the filesystem and S3 backends for every operation
"""

from __future__ import annotations

import asyncio
import logging
import posixpath
from typing import BinaryIO, Dict, List, Union

from ..errors import NotFoundError
from .base import FileDescriptor
from .path_based import PathStorageEngine

logger = logging.getLogger(__name__)


class InMemoryOperations:
    """PathOperations over a dict of key to bytes.

    Attributes:
        root_path: Key prefix of the storage namespace
        objects: Stored entries, exposed for test assertions
    """

    def __init__(self, root_path: str = "") -> None:
        self.root_path = root_path
        self.objects: Dict[str, bytes] = {}
        self._lock = asyncio.Lock()

    def join(self, *parts: str) -> str:
        return posixpath.join(*[p for p in parts if p])

    async def list_directory(self, prefix: str) -> List[FileDescriptor]:
        if prefix and not prefix.endswith("/"):
            prefix += "/"

        files = []
        for key in sorted(self.objects):
            if not key.startswith(prefix):
                continue
            remainder = key[len(prefix):]
            if "/" in remainder:
                continue
            descriptor = FileDescriptor.from_filename(remainder)
            if descriptor is not None:
                files.append(descriptor)
        return files

    async def read_all(self, key: str) -> bytes:
        try:
            return self.objects[key]
        except KeyError:
            raise NotFoundError(f"No such key: {key}", key=key)

    async def copy_to_local(self, key: str, destination: str) -> str:
        data = await self.read_all(key)
        await asyncio.get_event_loop().run_in_executor(None, self._write_file, destination, data)
        return destination

    @staticmethod
    def _write_file(path: str, data: bytes) -> None:
        with open(path, "wb") as f:
            f.write(data)

    async def write_data(self, key: str, data: Union[bytes, BinaryIO]) -> None:
        if not isinstance(data, (bytes, bytearray)):
            data = await asyncio.get_event_loop().run_in_executor(None, data.read)
        async with self._lock:
            self.objects[key] = bytes(data)

    async def delete(self, key: str) -> None:
        async with self._lock:
            if key not in self.objects:
                raise NotFoundError(f"No such key: {key}", key=key)
            del self.objects[key]

    async def close(self) -> None:
        """Close (no-op for in-memory, data is kept for inspection)."""


class InMemoryStorageEngine(PathStorageEngine):
    """Storage engine keeping snapshots in memory."""

    def __init__(self, root_path: str = "") -> None:
        super().__init__(InMemoryOperations(root_path))
