"""
Integration tests for SqliteEngine against real SQLite files.

Tests cover:
- Dumping a subset of tables (schema, indexes and rows)
- Restoring into a shard with the tables dropped
- Refusing to restore over existing tables, with rollback
- A full store -> restore cycle through the filesystem backend
"""

import os
import sqlite3

import pytest

from dbaas.taara import (
    FileSystemEngine,
    SqliteEngine,
    list_snapshots,
    restore_snapshot,
    store_snapshot,
)
from dbaas.taara.errors import DumpFailedError, RestoreFailedError
from tests.fakes import scratch_files


def _rows(db_path, table):
    conn = sqlite3.connect(db_path)
    try:
        return sorted(conn.execute(f"SELECT * FROM {table}").fetchall())
    finally:
        conn.close()


def _tables(db_path):
    conn = sqlite3.connect(db_path)
    try:
        rows = conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name"
        ).fetchall()
        return [name for (name,) in rows]
    finally:
        conn.close()


def _drop(db_path, *tables):
    conn = sqlite3.connect(db_path)
    try:
        for table in tables:
            conn.execute(f"DROP TABLE {table}")
        conn.commit()
    finally:
        conn.close()


@pytest.fixture
def shard_db(data_dir):
    """A shard database with two related tables and an unrelated one."""
    path = os.path.join(data_dir, "tenant_1.db")
    conn = sqlite3.connect(path)
    conn.executescript(
        """
        CREATE TABLE table_a (id INTEGER PRIMARY KEY, value INTEGER NOT NULL);
        CREATE TABLE table_b (a_id INTEGER NOT NULL, weight INTEGER NOT NULL);
        CREATE INDEX idx_table_b_a_id ON table_b (a_id);
        CREATE TABLE audit (entry TEXT);
        """
    )
    conn.executemany("INSERT INTO table_a VALUES (?, ?)", [(i, i) for i in range(1, 101)])
    conn.executemany(
        "INSERT INTO table_b VALUES (?, ?)",
        [(i, w) for i in range(1, 101) for w in range(1, 6)],
    )
    conn.execute("INSERT INTO audit VALUES ('created')")
    conn.commit()
    conn.close()
    return path


class TestSqliteEngine:
    """Dump and restore of a single shard database."""

    @pytest.mark.asyncio
    async def test_dump_contains_only_requested_tables(self, shard_db, data_dir):
        dump_path = os.path.join(data_dir, "out.snapshot")
        await SqliteEngine(shard_db).dump(["table_a", "table_b"], dump_path)

        assert _tables(dump_path) == ["table_a", "table_b"]
        assert len(_rows(dump_path, "table_a")) == 100
        assert len(_rows(dump_path, "table_b")) == 500

        conn = sqlite3.connect(dump_path)
        try:
            indexes = conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'index'"
            ).fetchall()
        finally:
            conn.close()
        assert indexes == [("idx_table_b_a_id",)]

    @pytest.mark.asyncio
    async def test_dump_leaves_shard_untouched(self, shard_db, data_dir):
        before = _rows(shard_db, "table_a")
        await SqliteEngine(shard_db).dump(["table_a"], os.path.join(data_dir, "out.snapshot"))

        assert _rows(shard_db, "table_a") == before
        assert _tables(shard_db) == ["audit", "table_a", "table_b"]

    @pytest.mark.asyncio
    async def test_dump_missing_table(self, shard_db, data_dir):
        with pytest.raises(DumpFailedError) as exc_info:
            await SqliteEngine(shard_db).dump(
                ["table_a", "nope"], os.path.join(data_dir, "out.snapshot")
            )

        assert str(exc_info.value) == "Could not dump tables 'table_a', 'nope': no such table: nope"
        assert exc_info.value.diagnostic == "no such table: nope"

    @pytest.mark.asyncio
    async def test_dump_missing_database(self, data_dir):
        engine = SqliteEngine(os.path.join(data_dir, "absent.db"))

        with pytest.raises(DumpFailedError, match="unable to open database file"):
            await engine.dump(["table_a"], os.path.join(data_dir, "out.snapshot"))

    @pytest.mark.asyncio
    async def test_restore_dropped_tables(self, shard_db, data_dir):
        engine = SqliteEngine(shard_db)
        dump_path = os.path.join(data_dir, "out.snapshot")
        rows_a = _rows(shard_db, "table_a")
        rows_b = _rows(shard_db, "table_b")

        await engine.dump(["table_a", "table_b"], dump_path)
        _drop(shard_db, "table_a", "table_b")
        await engine.restore(dump_path)

        assert _rows(shard_db, "table_a") == rows_a
        assert _rows(shard_db, "table_b") == rows_b
        assert _rows(shard_db, "audit") == [("created",)]

    @pytest.mark.asyncio
    async def test_restore_over_existing_table_rolls_back(self, shard_db, data_dir):
        """Nothing is restored if any table of the dump already exists."""
        engine = SqliteEngine(shard_db)
        dump_path = os.path.join(data_dir, "out.snapshot")
        await engine.dump(["table_a", "table_b"], dump_path)
        _drop(shard_db, "table_a")

        with pytest.raises(RestoreFailedError) as exc_info:
            await engine.restore(dump_path)

        assert str(exc_info.value) == "Could not restore dump: table table_b already exists"
        assert _tables(shard_db) == ["audit", "table_b"]

    @pytest.mark.asyncio
    async def test_restore_missing_dump(self, shard_db, data_dir):
        with pytest.raises(RestoreFailedError, match="no such dump file"):
            await SqliteEngine(shard_db).restore(os.path.join(data_dir, "absent.snapshot"))


class TestSqliteSnapshotCycle:
    """Orchestrated snapshots of a SQLite shard."""

    @pytest.mark.asyncio
    async def test_store_and_restore(self, shard_db, data_dir, scratch_dir):
        storage = FileSystemEngine(os.path.join(data_dir, "snapshots"))
        db_engine = SqliteEngine(shard_db)
        rows_a = _rows(shard_db, "table_a")

        metadata = await store_snapshot(
            ["table_a", "table_b"], {"tenant": 1}, storage, db_engine
        )
        assert await list_snapshots(storage) == [metadata.identifier]
        assert scratch_files(scratch_dir) == []

        _drop(shard_db, "table_a", "table_b")
        await restore_snapshot(metadata.identifier, storage, db_engine)

        assert _rows(shard_db, "table_a") == rows_a
        assert len(_rows(shard_db, "table_b")) == 500
        assert scratch_files(scratch_dir) == []

    @pytest.mark.asyncio
    async def test_failed_dump_leaves_no_temp_file(self, shard_db, data_dir, scratch_dir):
        """The partially written dump is removed."""
        storage = FileSystemEngine(os.path.join(data_dir, "snapshots"))

        with pytest.raises(DumpFailedError):
            await store_snapshot(["nope"], {}, storage, SqliteEngine(shard_db))

        assert scratch_files(scratch_dir) == []
        assert await list_snapshots(storage) == []
