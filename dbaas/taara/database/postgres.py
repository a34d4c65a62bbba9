"""
PostgreSQL database engine.

Dumps use pg_dump's custom archive format; restores use pg_restore with
--exit-on-error and --single-transaction so a failed restore leaves the
database untouched.

Invariants:
    - The password is passed through PGPASSWORD, never on the command line
    - Non-zero exit status raises with the captured stderr
    - A tool that cannot be started raises with returncode None
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Dict, List, Sequence, Tuple

from ..config import PostgresConfig
from ..errors import DumpFailedError, RestoreFailedError

logger = logging.getLogger(__name__)


class PostgresEngine:
    """Dumps and restores PostgreSQL tables with pg_dump/pg_restore.

    Example:
        >>> engine = PostgresEngine(PostgresConfig(database="shard_7"))
        >>> await engine.dump(["accounts", "orders"], "/tmp/shard_7.dump")
    """

    def __init__(self, config: PostgresConfig) -> None:
        self.config = config

    def auth_args(self) -> Tuple[List[str], Dict[str, str]]:
        """Connection arguments and the environment to run the tools with."""
        args = [
            "-d", self.config.database,
            "-h", self.config.host,
            "-p", str(self.config.port),
            "-U", self.config.user,
        ]
        env = os.environ.copy()
        if self.config.password:
            env["PGPASSWORD"] = self.config.password
        return args, env

    def dump_command(self, tablenames: Sequence[str], destination: str) -> List[str]:
        args, _ = self.auth_args()
        command = [self.config.pg_dump_path] + args + ["-F", "custom", "-f", destination]
        for table in tablenames:
            command += ["-t", table]
        return command

    def restore_command(self, source: str) -> List[str]:
        args, _ = self.auth_args()
        return (
            [self.config.pg_restore_path]
            + args
            + ["-F", "custom", "--exit-on-error", "--single-transaction", source]
        )

    async def _run(self, command: List[str]) -> Tuple[int, str]:
        _, env = self.auth_args()
        logger.debug(f"Running {command[0]}", extra={"args": command[1:]})
        process = await asyncio.create_subprocess_exec(
            *command,
            env=env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await process.communicate()
        return process.returncode, stderr.decode("utf-8", errors="replace").strip()

    async def dump(self, tablenames: Sequence[str], destination: str) -> None:
        command = self.dump_command(tablenames, destination)
        try:
            returncode, log = await self._run(command)
        except OSError as e:
            raise DumpFailedError(f"Could not spawn {command[0]}: {e}", diagnostic=str(e)) from e

        if returncode != 0:
            table_string = ", ".join(f"'{t}'" for t in tablenames)
            logger.error(f"pg_dump failed with return code {returncode}: {log}")
            raise DumpFailedError(
                f"Could not dump tables {table_string}: {log}",
                diagnostic=log,
                returncode=returncode,
            )

    async def restore(self, source: str) -> None:
        command = self.restore_command(source)
        try:
            returncode, log = await self._run(command)
        except OSError as e:
            raise RestoreFailedError(
                f"Could not spawn {command[0]}: {e}", diagnostic=str(e)
            ) from e

        if returncode != 0:
            logger.error(f"pg_restore failed with return code {returncode}: {log}")
            raise RestoreFailedError(
                f"Could not restore dump: {log}",
                diagnostic=log,
                returncode=returncode,
            )

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__} "
            f"{self.config.user}@{self.config.host}:{self.config.port}/{self.config.database}>"
        )
