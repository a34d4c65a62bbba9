"""
Snapshot storage abstraction for taara.

This module provides a pluggable storage backend interface supporting:
- Local filesystem
- S3 and S3-compatible object stores (MinIO)
- In-memory (for testing)

All backends share the same layout and semantics through PathStorageEngine:
a backend only implements the PathOperations primitives.

Invariants:
    - Every snapshot has one metadata entry and one snapshot entry
    - Missing entries raise NotFoundError on every backend
    - Backends are interchangeable for every orchestrator operation

How to change safely:
    - New backends must implement PathOperations (or StorageEngine directly)
    - Add the new backend to the engine fixture in tests/unit/test_storage_engine.py
"""

from .base import FileDescriptor, StorageEngine, create_storage_engine
from .filesystem import FileSystemEngine, FileSystemOperations
from .memory import InMemoryOperations, InMemoryStorageEngine
from .path_based import PathOperations, PathStorageEngine
from .s3 import S3Operations, S3StorageEngine

__all__ = [
    # Protocol and types
    "StorageEngine",
    "PathOperations",
    "FileDescriptor",
    # Factory
    "create_storage_engine",
    # Implementations
    "PathStorageEngine",
    "FileSystemEngine",
    "FileSystemOperations",
    "InMemoryStorageEngine",
    "InMemoryOperations",
    "S3StorageEngine",
    "S3Operations",
]
