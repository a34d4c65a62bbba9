"""
Snapshot identifiers.

An identifier names one snapshot: the tables it covers plus the UTC second it
was captured at. Its canonical encoding is used as the file name / object key
in every storage backend:

    <table>-->[<table>...].<YYYYMMDD-HHmmss>[.<extension>]

Invariants:
    - Identifiers are immutable
    - captured_at is timezone-aware UTC with whole seconds
    - parse_identifier(identifier.encode(ext)) == identifier

How to change safely:
    - The encoding is persisted; never change DATE_FORMAT or TABLE_SEPARATOR
      without a migration for existing backends
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Tuple, Union

from ..errors import InvalidArgumentError, MalformedIdentifierError

DATE_FORMAT = "%Y%m%d-%H%M%S"
TABLE_SEPARATOR = "-->"

_DATE_RE = re.compile(r"^\d{8}-\d{6}$")


def _validate_tablename(name: str) -> None:
    if not isinstance(name, str) or not name:
        raise InvalidArgumentError("Table names must be non-empty strings", argument=repr(name))
    if TABLE_SEPARATOR in name:
        raise InvalidArgumentError(
            f"Table name {name!r} contains the reserved separator {TABLE_SEPARATOR!r}",
            argument=name,
        )
    if "/" in name:
        raise InvalidArgumentError(f"Table name {name!r} contains '/'", argument=name)


def as_tablenames(tables: Union[str, Iterable[str]]) -> Tuple[str, ...]:
    """Normalize a single table name or a sequence of names into a tuple."""
    if isinstance(tables, str):
        return (tables,)
    return tuple(tables)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SnapshotIdentifier:
    """Identifies a single snapshot.

    Attributes:
        tablenames: Tables included in the snapshot, in dump order
        captured_at: UTC capture time, truncated to whole seconds
    """

    tablenames: Tuple[str, ...]
    captured_at: datetime

    def __post_init__(self) -> None:
        names = as_tablenames(self.tablenames)
        if not names:
            raise InvalidArgumentError("At least one table name is required", argument="tablenames")
        for name in names:
            _validate_tablename(name)

        captured_at = self.captured_at
        if captured_at.tzinfo is None:
            captured_at = captured_at.replace(tzinfo=timezone.utc)
        captured_at = captured_at.astimezone(timezone.utc).replace(microsecond=0)

        # frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "tablenames", names)
        object.__setattr__(self, "captured_at", captured_at)

    @classmethod
    def create(cls, tablenames: Union[str, Iterable[str]]) -> SnapshotIdentifier:
        """Create an identifier captured now."""
        return cls(as_tablenames(tablenames), _utc_now())

    def encode(self, extension: str = "") -> str:
        """Canonical encoding, with an optional extension (without the dot)."""
        names = TABLE_SEPARATOR.join(self.tablenames)
        stamp = self.captured_at.strftime(DATE_FORMAT)
        encoded = f"{names}.{stamp}"
        if extension:
            encoded = f"{encoded}.{extension}"
        return encoded

    def filename(self, extension: str = "snapshot") -> str:
        """File name / object key for this identifier in a storage namespace."""
        return self.encode(extension)

    def __str__(self) -> str:
        return self.encode()


def _parse_date(text: str) -> datetime | None:
    if not _DATE_RE.match(text):
        return None
    try:
        parsed = datetime.strptime(text, DATE_FORMAT)
    except ValueError:
        return None
    return parsed.replace(tzinfo=timezone.utc)


def parse_identifier(text: str) -> SnapshotIdentifier:
    """Parse an encoded identifier, with or without an extension.

    Args:
        text: Encoded identifier, e.g. "a-->b.20160201-000000" or
            "a-->b.20160201-000000.metadata"

    Returns:
        The decoded SnapshotIdentifier

    Raises:
        MalformedIdentifierError: If the text cannot be decoded
    """
    if "." not in text:
        raise MalformedIdentifierError(f"Malformed snapshot identifier: {text!r}", text=text)

    names, _, tail = text.rpartition(".")
    captured_at = _parse_date(tail)
    if captured_at is None and "." in names:
        # tail was an extension
        names, _, tail = names.rpartition(".")
        captured_at = _parse_date(tail)

    if captured_at is None:
        raise MalformedIdentifierError(
            f"Malformed snapshot identifier {text!r}: cannot parse date {tail!r}",
            text=text,
        )
    if not names:
        raise MalformedIdentifierError(
            f"Malformed snapshot identifier {text!r}: no table names", text=text
        )

    try:
        return SnapshotIdentifier(tuple(names.split(TABLE_SEPARATOR)), captured_at)
    except InvalidArgumentError as e:
        raise MalformedIdentifierError(
            f"Malformed snapshot identifier {text!r}: {e.message}", text=text
        ) from e
