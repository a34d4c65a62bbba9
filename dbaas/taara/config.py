"""
Configuration management for taara.

All configuration is done via environment variables; command-line flags may
override individual values. This module provides typed configuration classes
with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep environment variable names stable, they are used by deployments
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Type, TypeVar

logger = logging.getLogger(__name__)

_E = TypeVar("_E", bound=Enum)


class StorageBackend(Enum):
    """Supported snapshot storage backends."""

    FILESYSTEM = "filesystem"
    S3 = "s3"
    MEMORY = "memory"


class DatabaseBackend(Enum):
    """Supported database engines."""

    POSTGRES = "postgres"
    SQLITE = "sqlite"


def _enum_from_env(enum_cls: Type[_E], variable: str, default: str) -> _E:
    value = os.getenv(variable, default).lower()
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ValueError(f"Invalid {variable} '{value}'. Must be one of: {choices}")


@dataclass(frozen=True)
class StorageConfig:
    """Snapshot storage configuration.

    Attributes:
        backend: Which storage backend to use
        root_path: Root directory for the filesystem backend
    """

    backend: StorageBackend = StorageBackend.FILESYSTEM
    root_path: str = "/var/lib/taara"

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(
            backend=_enum_from_env(StorageBackend, "TAARA_STORAGE_BACKEND", "filesystem"),
            root_path=os.getenv("TAARA_STORAGE_ROOT", "/var/lib/taara"),
        )


@dataclass(frozen=True)
class S3Config:
    """S3 configuration for snapshot storage.

    Attributes:
        bucket: S3 bucket name
        region: AWS region
        endpoint_url: Custom endpoint URL (for MinIO)
        prefix: Key prefix under which metadata/ and snapshot/ live
        access_key_id: AWS access key ID (optional, uses AWS credential chain)
        secret_access_key: AWS secret access key (optional)
        force_path_style: Use path-style addressing (MinIO, fake S3)
    """

    bucket: str = "taara-snapshots"
    region: str = "us-east-1"
    endpoint_url: str | None = None
    prefix: str = ""
    access_key_id: str | None = None
    secret_access_key: str | None = None
    force_path_style: bool = False

    @classmethod
    def from_env(cls) -> S3Config:
        """Load configuration from environment variables."""
        return cls(
            bucket=os.getenv("S3_BUCKET", "taara-snapshots"),
            region=os.getenv("S3_REGION", os.getenv("AWS_REGION", "us-east-1")),
            endpoint_url=os.getenv("S3_ENDPOINT"),
            prefix=os.getenv("S3_SNAPSHOT_PREFIX", ""),
            access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
            force_path_style=os.getenv("S3_FORCE_PATH_STYLE", "false").lower() == "true",
        )


@dataclass(frozen=True)
class PostgresConfig:
    """PostgreSQL connection parameters for pg_dump/pg_restore.

    Attributes:
        database: Database name
        user: Role to connect as
        host: Server host
        port: Server port
        password: Password (passed via PGPASSWORD, never on the command line)
        pg_dump_path: pg_dump executable
        pg_restore_path: pg_restore executable
    """

    database: str = "postgres"
    user: str = "postgres"
    host: str = "localhost"
    port: int = 5432
    password: str | None = None
    pg_dump_path: str = "pg_dump"
    pg_restore_path: str = "pg_restore"

    @classmethod
    def from_env(cls) -> PostgresConfig:
        """Load configuration from environment variables."""
        return cls(
            database=os.getenv("PGDATABASE", "postgres"),
            user=os.getenv("PGUSER", "postgres"),
            host=os.getenv("PGHOST", "localhost"),
            port=int(os.getenv("PGPORT", "5432")),
            password=os.getenv("PGPASSWORD"),
            pg_dump_path=os.getenv("PG_DUMP_PATH", "pg_dump"),
            pg_restore_path=os.getenv("PG_RESTORE_PATH", "pg_restore"),
        )


@dataclass(frozen=True)
class DatabaseConfig:
    """Database engine selection.

    Attributes:
        backend: Which database engine dumps and restores tables
        sqlite_path: Shard database file for the sqlite engine
    """

    backend: DatabaseBackend = DatabaseBackend.POSTGRES
    sqlite_path: str | None = None

    @classmethod
    def from_env(cls) -> DatabaseConfig:
        """Load configuration from environment variables."""
        return cls(
            backend=_enum_from_env(DatabaseBackend, "TAARA_DATABASE_BACKEND", "postgres"),
            sqlite_path=os.getenv("SQLITE_PATH"),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )


@dataclass
class TaaraConfig:
    """Complete taara configuration.

    Attributes:
        storage: Storage backend selection
        s3: S3 configuration (if storage backend is S3)
        database: Database engine selection
        postgres: PostgreSQL parameters (if database backend is POSTGRES)
        observability: Logging configuration
        temp_dir: Directory for scratch dump files (None: platform default)
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    s3: S3Config = field(default_factory=S3Config)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)
    temp_dir: str | None = None

    @classmethod
    def from_env(cls) -> TaaraConfig:
        """Load complete configuration from environment variables.

        Raises:
            ValueError: If required configuration is missing or invalid.
        """
        config = cls(
            storage=StorageConfig.from_env(),
            s3=S3Config.from_env(),
            database=DatabaseConfig.from_env(),
            postgres=PostgresConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
            temp_dir=os.getenv("TAARA_TEMP_DIR"),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.storage.backend == StorageBackend.S3 and not self.s3.bucket:
            raise ValueError("S3_BUCKET is required when TAARA_STORAGE_BACKEND=s3")
        if self.storage.backend == StorageBackend.FILESYSTEM and not self.storage.root_path:
            raise ValueError("TAARA_STORAGE_ROOT is required when TAARA_STORAGE_BACKEND=filesystem")
        if self.database.backend == DatabaseBackend.SQLITE and not self.database.sqlite_path:
            raise ValueError("SQLITE_PATH is required when TAARA_DATABASE_BACKEND=sqlite")

        if self.temp_dir and not os.path.isdir(self.temp_dir):
            logger.warning(f"Temporary directory does not exist: {self.temp_dir}")

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "taara configuration loaded",
            extra={
                "storage_backend": self.storage.backend.value,
                "storage_root": self.storage.root_path
                if self.storage.backend == StorageBackend.FILESYSTEM
                else None,
                "s3_bucket": self.s3.bucket if self.storage.backend == StorageBackend.S3 else None,
                "s3_endpoint": self.s3.endpoint_url,
                "database_backend": self.database.backend.value,
                "pg_host": self.postgres.host
                if self.database.backend == DatabaseBackend.POSTGRES
                else None,
                "pg_database": self.postgres.database
                if self.database.backend == DatabaseBackend.POSTGRES
                else None,
                "temp_dir": self.temp_dir,
                "log_level": self.observability.log_level,
            },
        )
