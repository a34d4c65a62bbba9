"""
Shared fixtures for the taara test suite.
"""

import tempfile

import pytest

from dbaas.taara.tempfiles import set_temp_dir
from tests.fakes import FakeDatabaseEngine, FakeS3Client


@pytest.fixture
def data_dir():
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def scratch_dir():
    """Route taara's temporary files into a dedicated directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        set_temp_dir(tmpdir)
        try:
            yield tmpdir
        finally:
            set_temp_dir(None)


@pytest.fixture
def fake_s3():
    """Fake S3 client with one empty bucket."""
    return FakeS3Client()


@pytest.fixture
def db_engine():
    """Fake database with two related tables."""
    return FakeDatabaseEngine(
        {
            "table_a": [[i, i] for i in range(1, 101)],
            "table_b": [[i, w] for i in range(1, 101) for w in range(1, 6)],
        }
    )
