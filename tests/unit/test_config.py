"""
Unit tests for environment-driven configuration.
"""

import pytest

from dbaas.taara.config import (
    DatabaseBackend,
    PostgresConfig,
    S3Config,
    StorageBackend,
    StorageConfig,
    TaaraConfig,
)

_VARIABLES = [
    "TAARA_STORAGE_BACKEND",
    "TAARA_STORAGE_ROOT",
    "TAARA_DATABASE_BACKEND",
    "TAARA_TEMP_DIR",
    "SQLITE_PATH",
    "S3_BUCKET",
    "S3_REGION",
    "S3_ENDPOINT",
    "S3_SNAPSHOT_PREFIX",
    "S3_FORCE_PATH_STYLE",
    "AWS_REGION",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "PGDATABASE",
    "PGUSER",
    "PGHOST",
    "PGPORT",
    "PGPASSWORD",
    "LOG_LEVEL",
    "LOG_FORMAT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Start every test from an empty taara environment."""
    for variable in _VARIABLES:
        monkeypatch.delenv(variable, raising=False)


class TestTaaraConfig:
    """Tests for TaaraConfig.from_env and validate."""

    def test_defaults(self):
        """Defaults target a local filesystem store and PostgreSQL."""
        config = TaaraConfig.from_env()
        assert config.storage.backend == StorageBackend.FILESYSTEM
        assert config.storage.root_path == "/var/lib/taara"
        assert config.database.backend == DatabaseBackend.POSTGRES
        assert config.postgres.port == 5432
        assert config.temp_dir is None

    def test_s3_from_env(self, monkeypatch):
        """S3 settings are read from the standard variables."""
        monkeypatch.setenv("TAARA_STORAGE_BACKEND", "S3")
        monkeypatch.setenv("S3_BUCKET", "shard-snapshots")
        monkeypatch.setenv("S3_ENDPOINT", "http://localhost:9000")
        monkeypatch.setenv("S3_SNAPSHOT_PREFIX", "taara")
        monkeypatch.setenv("S3_FORCE_PATH_STYLE", "true")
        monkeypatch.setenv("AWS_REGION", "eu-west-1")

        config = TaaraConfig.from_env()

        assert config.storage.backend == StorageBackend.S3
        assert config.s3 == S3Config(
            bucket="shard-snapshots",
            region="eu-west-1",
            endpoint_url="http://localhost:9000",
            prefix="taara",
            force_path_style=True,
        )

    def test_postgres_from_env(self, monkeypatch):
        """Connection parameters follow libpq's variable names."""
        monkeypatch.setenv("PGDATABASE", "shard_7")
        monkeypatch.setenv("PGUSER", "taara")
        monkeypatch.setenv("PGHOST", "db.internal")
        monkeypatch.setenv("PGPORT", "6543")
        monkeypatch.setenv("PGPASSWORD", "secret")

        assert PostgresConfig.from_env() == PostgresConfig(
            database="shard_7", user="taara", host="db.internal", port=6543, password="secret"
        )

    def test_invalid_backend(self, monkeypatch):
        """Unknown backends name the offending variable."""
        monkeypatch.setenv("TAARA_STORAGE_BACKEND", "ftp")
        with pytest.raises(ValueError, match="TAARA_STORAGE_BACKEND"):
            TaaraConfig.from_env()

    def test_sqlite_requires_path(self, monkeypatch):
        """The sqlite engine needs a database file."""
        monkeypatch.setenv("TAARA_DATABASE_BACKEND", "sqlite")
        with pytest.raises(ValueError, match="SQLITE_PATH"):
            TaaraConfig.from_env()

    def test_s3_requires_bucket(self):
        """The S3 backend needs a bucket."""
        config = TaaraConfig(
            storage=StorageConfig(backend=StorageBackend.S3),
            s3=S3Config(bucket=""),
        )
        with pytest.raises(ValueError, match="S3_BUCKET"):
            config.validate()

    def test_log_config_redacts_secrets(self, caplog):
        """Secrets never reach the logs."""
        config = TaaraConfig(postgres=PostgresConfig(password="hunter2"))
        with caplog.at_level("INFO", logger="dbaas.taara.config"):
            config.log_config()
        assert "taara configuration loaded" in caplog.text
        for record in caplog.records:
            assert "hunter2" not in str(record.__dict__)
