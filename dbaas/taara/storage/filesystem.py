"""
Local filesystem storage backend.

Snapshots are stored as plain files under a root directory:
    <root>/metadata/<identifier>.metadata
    <root>/snapshot/<identifier>.snapshot

Loading a snapshot does not copy it: the stored file already is a local file
the database engine can read.

Invariants:
    - Blocking file I/O runs in the default executor
    - Parent directories are created on write, never on read
    - Deleting a missing file raises NotFoundError
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
from typing import BinaryIO, List, Union

from ..errors import NotFoundError
from .base import FileDescriptor
from .path_based import PathStorageEngine

logger = logging.getLogger(__name__)


class FileSystemOperations:
    """PathOperations over a local directory tree.

    Attributes:
        root_path: Root directory of the storage namespace
    """

    def __init__(self, root_path: str) -> None:
        self.root_path = str(root_path)

    def join(self, *parts: str) -> str:
        return os.path.join(*parts)

    async def _run(self, func, *args):
        return await asyncio.get_event_loop().run_in_executor(None, func, *args)

    async def list_directory(self, prefix: str) -> List[FileDescriptor]:
        return await self._run(self._list_directory, prefix)

    def _list_directory(self, prefix: str) -> List[FileDescriptor]:
        try:
            entries = list(os.scandir(prefix))
        except FileNotFoundError:
            return []

        files = []
        for entry in sorted(entries, key=lambda e: e.name):
            if not entry.is_file():
                continue
            descriptor = FileDescriptor.from_filename(entry.name)
            if descriptor is not None:
                files.append(descriptor)
        return files

    async def read_all(self, key: str) -> bytes:
        return await self._run(self._read_all, key)

    def _read_all(self, key: str) -> bytes:
        try:
            with open(key, "rb") as f:
                return f.read()
        except FileNotFoundError as e:
            raise NotFoundError(f"No such file: {key}", key=key) from e

    async def copy_to_local(self, key: str, destination: str) -> str:
        exists = await self._run(os.path.isfile, key)
        if not exists:
            raise NotFoundError(f"No such file: {key}", key=key)
        return key

    async def write_data(self, key: str, data: Union[bytes, BinaryIO]) -> None:
        await self._run(self._write_data, key, data)

    def _write_data(self, key: str, data: Union[bytes, BinaryIO]) -> None:
        parent = os.path.dirname(key)
        if parent:
            os.makedirs(parent, exist_ok=True)

        with open(key, "wb") as out:
            if isinstance(data, (bytes, bytearray)):
                out.write(data)
            else:
                shutil.copyfileobj(data, out)

    async def delete(self, key: str) -> None:
        try:
            await self._run(os.unlink, key)
        except FileNotFoundError as e:
            raise NotFoundError(f"No such file: {key}", key=key) from e

    async def close(self) -> None:
        """Nothing to release."""


class FileSystemEngine(PathStorageEngine):
    """Storage engine rooted at a local directory.

    Example:
        >>> engine = FileSystemEngine("/var/lib/taara")
        >>> await store_snapshot(["accounts"], {}, engine, db_engine)
    """

    def __init__(self, root_path: str) -> None:
        super().__init__(FileSystemOperations(root_path))
