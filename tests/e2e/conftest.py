"""
E2E test fixtures for taara.

These tests require PostgreSQL (with pg_dump, pg_restore and psql on PATH)
and an S3-compatible object store. docker-compose.yml at the repository root
starts both.
"""

import os
import socket
import subprocess
import time
import uuid
from typing import Generator

import pytest

from dbaas.taara.config import PostgresConfig, S3Config

# Skip E2E tests if not in E2E mode
E2E_ENABLED = os.environ.get("TAARA_E2E_TESTS", "0") == "1"

pytestmark = pytest.mark.skipif(
    not E2E_ENABLED,
    reason="E2E tests disabled. Set TAARA_E2E_TESTS=1 to enable."
)


def wait_for_service(host: str, port: int, timeout: int = 60) -> bool:
    """Wait for a service to become available."""
    start = time.time()
    while time.time() - start < timeout:
        try:
            with socket.create_connection((host, port), timeout=1):
                return True
        except OSError:
            time.sleep(1)
    return False


@pytest.fixture(scope="session")
def docker_compose() -> Generator[None, None, None]:
    """Start docker-compose unless the services are already provided."""
    if not E2E_ENABLED or os.environ.get("TAARA_E2E_EXTERNAL") == "1":
        yield
        return

    compose_file = os.path.join(os.path.dirname(__file__), "..", "..", "docker-compose.yml")

    subprocess.run(
        ["docker-compose", "-f", compose_file, "up", "-d"],
        check=True,
        capture_output=True,
    )

    try:
        assert wait_for_service("localhost", 5432, timeout=60), "PostgreSQL not ready"
        assert wait_for_service("localhost", 9000, timeout=60), "MinIO not ready"
        yield
    finally:
        subprocess.run(
            ["docker-compose", "-f", compose_file, "down", "-v"],
            check=True,
            capture_output=True,
        )


@pytest.fixture
def postgres_config(docker_compose) -> PostgresConfig:
    return PostgresConfig(
        database=os.environ.get("PGDATABASE", "taara"),
        user=os.environ.get("PGUSER", "taara"),
        host=os.environ.get("PGHOST", "localhost"),
        port=int(os.environ.get("PGPORT", "5432")),
        password=os.environ.get("PGPASSWORD", "taara"),
    )


@pytest.fixture
def s3_config(docker_compose) -> S3Config:
    """S3 configuration with a unique prefix for test isolation."""
    return S3Config(
        bucket=os.environ.get("S3_BUCKET", "taara-e2e"),
        endpoint_url=os.environ.get("S3_ENDPOINT", "http://localhost:9000"),
        access_key_id=os.environ.get("AWS_ACCESS_KEY_ID", "minioadmin"),
        secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY", "minioadmin"),
        prefix=f"e2e-{uuid.uuid4().hex[:8]}",
        force_path_style=True,
    )


@pytest.fixture
def psql(postgres_config):
    """Run SQL through psql and return its output."""

    def run(sql: str) -> str:
        env = dict(os.environ, PGPASSWORD=postgres_config.password or "")
        result = subprocess.run(
            [
                "psql",
                "-d", postgres_config.database,
                "-h", postgres_config.host,
                "-p", str(postgres_config.port),
                "-U", postgres_config.user,
                "-v", "ON_ERROR_STOP=1",
                "-At",
                "-c", sql,
            ],
            env=env,
            check=True,
            capture_output=True,
            text=True,
        )
        return result.stdout.strip()

    return run
