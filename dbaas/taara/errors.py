"""
Error types for taara.

This module defines all exception types raised by the snapshot layer:
- TaaraError: Base exception
- InvalidArgumentError: Bad caller input (empty table list, bad names)
- MalformedIdentifierError: Unparsable snapshot filename/key
- MalformedMetadataError: Unparsable metadata document
- SnapshotExistsError: Identifier already taken by a stored snapshot
- StorageError: Backend I/O failure (disk, network, permissions)
- NotFoundError: Missing metadata or snapshot object
- DumpFailedError / RestoreFailedError: Database tool failures

Invariants:
    - All errors inherit from TaaraError
    - Errors include context for debugging
    - NotFoundError is a StorageError, so callers catching storage
      failures also see missing objects
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class TaaraError(Exception):
    """Base exception for all taara errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "TAARA_ERROR"
        self.details = details or {}


class InvalidArgumentError(TaaraError):
    """Caller supplied an invalid argument.

    Raised when:
    - The table list is empty
    - A table name is empty or contains a reserved separator
    """

    def __init__(self, message: str, argument: Optional[str] = None) -> None:
        super().__init__(message, code="INVALID_ARGUMENT", details={"argument": argument})
        self.argument = argument


class MalformedIdentifierError(InvalidArgumentError):
    """A stored filename or key could not be parsed into an identifier."""

    def __init__(self, message: str, text: Optional[str] = None) -> None:
        super().__init__(message, argument=text)
        self.code = "MALFORMED_IDENTIFIER"
        self.details = {"text": text}
        self.text = text


class SnapshotExistsError(TaaraError):
    """A snapshot with the same identifier is already stored.

    Two stores of the same tables within one second share an identifier.
    """

    def __init__(self, message: str, identifier: Optional[str] = None) -> None:
        super().__init__(message, code="ALREADY_EXISTS", details={"identifier": identifier})
        self.identifier = identifier


class MalformedMetadataError(TaaraError):
    """A metadata document is not valid JSON or misses required keys."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="MALFORMED_METADATA")


class StorageError(TaaraError):
    """Storage backend operation failed.

    Raised when:
    - Disk or network I/O fails
    - Credentials are rejected
    - The bucket does not exist
    """

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message, code=code or "STORAGE_FAILED", details={"key": key})
        self.key = key


class NotFoundError(StorageError):
    """Metadata or snapshot object does not exist."""

    def __init__(self, message: str, key: Optional[str] = None) -> None:
        super().__init__(message, key=key, code="NOT_FOUND")


class DatabaseError(TaaraError):
    """Database dump/restore tool failed.

    Attributes:
        diagnostic: Captured diagnostic output of the tool (stderr)
        returncode: Exit status, or None if no external tool exit status exists
    """

    def __init__(
        self,
        message: str,
        diagnostic: str = "",
        returncode: Optional[int] = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code=code or "DATABASE_ERROR",
            details={"diagnostic": diagnostic, "returncode": returncode},
        )
        self.diagnostic = diagnostic
        self.returncode = returncode

    @property
    def spawn_failed(self) -> bool:
        """Whether the tool never ran (as opposed to exiting non-zero)."""
        return self.returncode is None and isinstance(self.__cause__, OSError)


class DumpFailedError(DatabaseError):
    """Dumping tables failed."""

    def __init__(
        self,
        message: str,
        diagnostic: str = "",
        returncode: Optional[int] = None,
    ) -> None:
        super().__init__(message, diagnostic, returncode, code="DUMP_FAILED")


class RestoreFailedError(DatabaseError):
    """Restoring a dump failed."""

    def __init__(
        self,
        message: str,
        diagnostic: str = "",
        returncode: Optional[int] = None,
    ) -> None:
        super().__init__(message, diagnostic, returncode, code="RESTORE_FAILED")
