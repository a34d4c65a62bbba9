"""
S3-backed storage backend.

Snapshots are stored as objects under an optional key prefix:
    s3://<bucket>/<prefix>/metadata/<identifier>.metadata
    s3://<bucket>/<prefix>/snapshot/<identifier>.snapshot

Works against AWS S3 and S3-compatible stores (MinIO) through aiobotocore.
Loading a snapshot downloads it to the local destination path.

Invariants:
    - Listing only looks one level deep (Delimiter="/")
    - Missing objects raise NotFoundError, on load and on delete
    - Transport and credential failures raise StorageError
"""

from __future__ import annotations

import asyncio
import logging
import posixpath
from contextlib import contextmanager
from typing import Any, BinaryIO, Iterator, List, Optional, Union

from aiobotocore.config import AioConfig
from aiobotocore.session import get_session
from botocore.exceptions import BotoCoreError, ClientError

from ..config import S3Config
from ..errors import NotFoundError, StorageError
from .base import FileDescriptor
from .path_based import PathStorageEngine

logger = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 1024 * 1024  # 1MB

_NOT_FOUND_CODES = {"NoSuchKey", "NotFound", "404"}


class S3Operations:
    """PathOperations over an S3 bucket.

    The client is created lazily on first use and released by close().
    A client passed in by the caller is used as-is and never closed here.

    Attributes:
        config: S3 configuration
        root_path: Key prefix of the storage namespace
    """

    def __init__(self, config: S3Config, client: Optional[Any] = None) -> None:
        self.config = config
        self.root_path = config.prefix.strip("/")
        self._s3_client = client
        self._s3_ctx = None
        self._owns_client = client is None
        self._lock = asyncio.Lock()

    @property
    def bucket(self) -> str:
        return self.config.bucket

    def join(self, *parts: str) -> str:
        return posixpath.join(*[p for p in parts if p])

    async def _client(self) -> Any:
        if self._s3_client is None:
            async with self._lock:
                if self._s3_client is None:
                    await self._init_s3_client()
        return self._s3_client

    async def _init_s3_client(self) -> None:
        """Initialize S3 client."""
        session = get_session()

        client_kwargs = {
            "region_name": self.config.region,
        }

        if self.config.endpoint_url:
            client_kwargs["endpoint_url"] = self.config.endpoint_url

        if self.config.access_key_id:
            client_kwargs["aws_access_key_id"] = self.config.access_key_id
            client_kwargs["aws_secret_access_key"] = self.config.secret_access_key

        if self.config.force_path_style:
            client_kwargs["config"] = AioConfig(s3={"addressing_style": "path"})

        with self._s3_errors("connect to", self.bucket):
            self._s3_ctx = session.create_client("s3", **client_kwargs)
            self._s3_client = await self._s3_ctx.__aenter__()
        logger.debug(
            "S3 client initialized",
            extra={"bucket": self.bucket, "endpoint_url": self.config.endpoint_url},
        )

    async def close(self) -> None:
        """Close S3 client."""
        if self._owns_client and self._s3_ctx is not None:
            await self._s3_ctx.__aexit__(None, None, None)
            self._s3_ctx = None
            self._s3_client = None

    @contextmanager
    def _s3_errors(self, action: str, key: str) -> Iterator[None]:
        try:
            yield
        except ClientError as e:
            error_code = (getattr(e, "response", None) or {}).get("Error", {}).get("Code", "")
            if error_code in _NOT_FOUND_CODES:
                raise NotFoundError(f"No such object: s3://{self.bucket}/{key}", key=key) from e
            if error_code == "NoSuchBucket":
                raise StorageError(f"S3 bucket '{self.bucket}' does not exist", key=key) from e
            raise StorageError(f"Failed to {action} s3://{self.bucket}/{key}: {e}", key=key) from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to {action} s3://{self.bucket}/{key}: {e}", key=key) from e

    async def list_directory(self, prefix: str) -> List[FileDescriptor]:
        if prefix and not prefix.endswith("/"):
            prefix += "/"

        client = await self._client()
        files = []
        with self._s3_errors("list", prefix):
            paginator = client.get_paginator("list_objects_v2")
            async for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix, Delimiter="/"):
                for obj in page.get("Contents", []):
                    basename = obj["Key"][len(prefix):]
                    if not basename or "/" in basename:
                        continue
                    descriptor = FileDescriptor.from_filename(basename)
                    if descriptor is not None:
                        files.append(descriptor)
        return files

    async def read_all(self, key: str) -> bytes:
        client = await self._client()
        with self._s3_errors("read", key):
            response = await client.get_object(Bucket=self.bucket, Key=key)
            return await response["Body"].read()

    async def copy_to_local(self, key: str, destination: str) -> str:
        client = await self._client()
        loop = asyncio.get_event_loop()
        with self._s3_errors("download", key):
            response = await client.get_object(Bucket=self.bucket, Key=key)
            body = response["Body"]
            f = await loop.run_in_executor(None, open, destination, "wb")
            try:
                while True:
                    chunk = await body.read(DOWNLOAD_CHUNK_SIZE)
                    if not chunk:
                        break
                    await loop.run_in_executor(None, f.write, chunk)
            finally:
                await loop.run_in_executor(None, f.close)
        return destination

    async def write_data(self, key: str, data: Union[bytes, BinaryIO]) -> None:
        client = await self._client()
        with self._s3_errors("upload", key):
            await client.put_object(Bucket=self.bucket, Key=key, Body=data)

    async def delete(self, key: str) -> None:
        client = await self._client()
        with self._s3_errors("delete", key):
            # delete_object succeeds for absent keys; match the filesystem backend
            await client.head_object(Bucket=self.bucket, Key=key)
            await client.delete_object(Bucket=self.bucket, Key=key)


class S3StorageEngine(PathStorageEngine):
    """Storage engine backed by an S3 bucket.

    Example:
        >>> async with S3StorageEngine(S3Config(bucket="shard-snapshots")) as engine:
        ...     await list_snapshots(engine)
    """

    def __init__(self, config: S3Config, client: Optional[Any] = None) -> None:
        super().__init__(S3Operations(config, client))
