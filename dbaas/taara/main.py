"""
taara command-line entry point.

Usage:
    taara list
    taara store TABLE [TABLE ...] [--metadata JSON]
    taara restore IDENTIFIER
    taara delete IDENTIFIER
    taara show IDENTIFIER

Configuration is read from environment variables (see config.py); the
--storage-root and --temp-dir flags override the corresponding settings.

Invariants:
    - Exit status is 0 on success and 1 on any snapshot error
    - Errors are reported on stderr, results on stdout
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from typing import List, Optional

import json_log_formatter

from ._version import __version__
from .config import TaaraConfig
from .database import create_database_engine
from .errors import TaaraError
from .orchestrator import (
    delete_snapshot,
    get_metadata,
    list_snapshots,
    restore_snapshot,
    store_snapshot,
)
from .snapshot import parse_identifier
from .storage import create_storage_engine
from .tempfiles import set_temp_dir

logger = logging.getLogger(__name__)


def setup_logging(config: TaaraConfig, verbose: bool = False) -> None:
    """Configure logging based on configuration.

    Args:
        config: taara configuration
        verbose: Force DEBUG level
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)
    if verbose:
        level = logging.DEBUG

    if config.observability.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("aiobotocore").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="taara",
        description="Snapshot, list and restore database tables",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--storage-root", help="Root directory of the filesystem backend")
    parser.add_argument("--temp-dir", help="Directory for temporary dump files")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("list", help="List stored snapshots, newest first")

    store = commands.add_parser("store", help="Snapshot tables")
    store.add_argument("tables", nargs="+", help="Tables to snapshot")
    store.add_argument("--metadata", default="{}", help="User metadata as a JSON document")

    for name, help_text in (
        ("restore", "Restore a snapshot"),
        ("delete", "Delete a snapshot"),
        ("show", "Print a snapshot's metadata"),
    ):
        command = commands.add_parser(name, help=help_text)
        command.add_argument("identifier", help="Snapshot identifier, e.g. a-->b.20160201-000000")

    return parser


def load_config(args: argparse.Namespace) -> TaaraConfig:
    """Environment configuration with command-line overrides applied."""
    config = TaaraConfig.from_env()
    if args.storage_root:
        config.storage = dataclasses.replace(config.storage, root_path=args.storage_root)
    if args.temp_dir:
        config.temp_dir = args.temp_dir
    config.validate()
    return config


async def run(args: argparse.Namespace, config: TaaraConfig) -> int:
    """Execute one CLI command. Returns the exit status."""
    storage_engine = create_storage_engine(config)
    try:
        if args.command == "list":
            identifiers = await list_snapshots(storage_engine)
            for identifier in sorted(identifiers, key=lambda i: i.captured_at, reverse=True):
                print(identifier.encode())

        elif args.command == "store":
            try:
                user_metadata = json.loads(args.metadata)
            except json.JSONDecodeError as e:
                print(f"Invalid --metadata JSON: {e}", file=sys.stderr)
                return 1
            db_engine = create_database_engine(config)
            metadata = await store_snapshot(args.tables, user_metadata, storage_engine, db_engine)
            print(metadata.identifier.encode())

        elif args.command == "restore":
            db_engine = create_database_engine(config)
            metadata = await restore_snapshot(
                parse_identifier(args.identifier), storage_engine, db_engine
            )
            print(f"Restored {metadata.identifier.encode()}")

        elif args.command == "delete":
            identifier = parse_identifier(args.identifier)
            await delete_snapshot(identifier, storage_engine)
            print(f"Deleted {identifier.encode()}")

        elif args.command == "show":
            metadata = await get_metadata(parse_identifier(args.identifier), storage_engine)
            print(metadata.to_json())

    except TaaraError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"{args.command} failed: {e}", file=sys.stderr)
        return 1

    finally:
        await storage_engine.close()

    return 0


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args)
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)

    setup_logging(config, verbose=args.verbose)
    config.log_config()
    set_temp_dir(config.temp_dir)

    sys.exit(asyncio.run(run(args, config)))


if __name__ == "__main__":
    main()
