"""
SQLite database engine for tenant shard databases.

A dump is itself a SQLite file holding the schema (tables and their indexes)
and rows of the dumped tables. Restoring copies every table of the dump back
into the shard database inside a single transaction.

Invariants:
    - The shard database is never modified by dump()
    - restore() refuses to overwrite an existing table and rolls back
      everything it did in that case
    - Blocking SQLite calls run in the default executor
"""

from __future__ import annotations

import asyncio
import logging
import os
import sqlite3
from typing import List, Sequence

from ..errors import DumpFailedError, RestoreFailedError

logger = logging.getLogger(__name__)


def _quote(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class SqliteEngine:
    """Dumps and restores tables of one SQLite database file.

    Attributes:
        db_path: Path of the shard database

    Example:
        >>> engine = SqliteEngine("/var/lib/shards/tenant_42.db")
        >>> await engine.dump(["nodes", "edges"], "/tmp/tenant_42.snapshot")
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = str(db_path)

    async def dump(self, tablenames: Sequence[str], destination: str) -> None:
        await asyncio.get_event_loop().run_in_executor(
            None, self._dump, list(tablenames), destination
        )

    async def restore(self, source: str) -> None:
        await asyncio.get_event_loop().run_in_executor(None, self._restore, source)

    def _dump(self, tablenames: List[str], destination: str) -> None:
        table_string = ", ".join(f"'{t}'" for t in tablenames)

        if not os.path.isfile(self.db_path):
            message = f"unable to open database file {self.db_path}"
            raise DumpFailedError(f"Could not dump tables {table_string}: {message}", message)

        if os.path.exists(destination):
            os.unlink(destination)

        conn = sqlite3.connect(destination, isolation_level=None)
        try:
            conn.execute("ATTACH DATABASE ? AS src", (self.db_path,))

            missing = []
            statements = []
            for table in tablenames:
                row = conn.execute(
                    "SELECT sql FROM src.sqlite_master WHERE type = 'table' AND name = ?",
                    (table,),
                ).fetchone()
                if row is None:
                    missing.append(table)
                    continue
                statements.append(row[0])
                indexes = conn.execute(
                    "SELECT sql FROM src.sqlite_master "
                    "WHERE type = 'index' AND tbl_name = ? AND sql IS NOT NULL",
                    (table,),
                ).fetchall()
                statements.extend(sql for (sql,) in indexes)

            if missing:
                message = "; ".join(f"no such table: {t}" for t in missing)
                raise DumpFailedError(f"Could not dump tables {table_string}: {message}", message)

            conn.execute("BEGIN")
            for sql in statements:
                conn.execute(sql)
            for table in tablenames:
                conn.execute(f"INSERT INTO main.{_quote(table)} SELECT * FROM src.{_quote(table)}")
            conn.execute("COMMIT")

        except sqlite3.Error as e:
            raise DumpFailedError(f"Could not dump tables {table_string}: {e}", str(e)) from e
        finally:
            conn.close()

        logger.debug("Dumped tables", extra={"tables": tablenames, "destination": destination})

    def _restore(self, source: str) -> None:
        if not os.path.isfile(source):
            message = f"no such dump file: {source}"
            raise RestoreFailedError(f"Could not restore dump: {message}", message)

        conn = sqlite3.connect(self.db_path, isolation_level=None)
        try:
            conn.execute("ATTACH DATABASE ? AS snap", (source,))
            rows = conn.execute(
                "SELECT type, name, sql FROM snap.sqlite_master "
                "WHERE sql IS NOT NULL AND name NOT LIKE 'sqlite_%' "
                "ORDER BY CASE type WHEN 'table' THEN 0 ELSE 1 END, rowid"
            ).fetchall()

            conn.execute("BEGIN")
            try:
                for kind, name, sql in rows:
                    if kind == "table":
                        exists = conn.execute(
                            "SELECT 1 FROM main.sqlite_master WHERE type = 'table' AND name = ?",
                            (name,),
                        ).fetchone()
                        if exists:
                            message = f"table {name} already exists"
                            raise RestoreFailedError(f"Could not restore dump: {message}", message)
                        conn.execute(sql)
                        conn.execute(
                            f"INSERT INTO main.{_quote(name)} SELECT * FROM snap.{_quote(name)}"
                        )
                    elif kind == "index":
                        conn.execute(sql)
                conn.execute("COMMIT")
            except BaseException:
                conn.execute("ROLLBACK")
                raise

        except sqlite3.Error as e:
            raise RestoreFailedError(f"Could not restore dump: {e}", str(e)) from e
        finally:
            conn.close()

        logger.debug("Restored dump", extra={"source": source, "tables": len(rows)})

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.db_path}>"
