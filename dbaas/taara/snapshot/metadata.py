"""
Storage metadata records.

One metadata record is persisted per snapshot. It pairs the identifier with
statistics collected while storing and with opaque user metadata, and is the
only source of truth for locating the snapshot object.

Document format (JSON, 4-space indented):
    {
        "identifier": "<tables>.<YYYYMMDD-HHmmss>",
        "metadata": <user value>,
        "stats": {"size_bytes": ..., "checksum": "sha256:..."}
    }

Invariants:
    - from_json(to_json(m)) == m for JSON-representable payloads
    - User metadata is round-tripped verbatim
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Union

from ..errors import MalformedMetadataError
from .identifier import SnapshotIdentifier, parse_identifier


@dataclass
class StorageMetadata:
    """Metadata stored alongside a snapshot.

    Attributes:
        identifier: Snapshot identifier
        stats: Statistics collected by the orchestrator
        metadata: User-provided metadata (opaque)
    """

    identifier: SnapshotIdentifier
    stats: Dict[str, Any] = field(default_factory=dict)
    metadata: Any = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "identifier": self.identifier.encode(""),
            "metadata": self.metadata,
            "stats": self.stats,
        }

    def to_json(self) -> str:
        """Serialize to the persisted JSON document."""
        return json.dumps(self.to_dict(), indent=4)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> StorageMetadata:
        """Create from dictionary."""
        if not isinstance(data, dict) or "identifier" not in data:
            raise MalformedMetadataError("Metadata document must be an object with an 'identifier'")
        return cls(
            identifier=parse_identifier(data["identifier"]),
            stats=data.get("stats") or {},
            metadata=data.get("metadata"),
        )

    @classmethod
    def from_json(cls, document: Union[str, bytes]) -> StorageMetadata:
        """Parse a persisted JSON document.

        Raises:
            MalformedMetadataError: If the document is not valid metadata JSON
            MalformedIdentifierError: If the embedded identifier is invalid
        """
        try:
            if isinstance(document, bytes):
                document = document.decode("utf-8")
            data = json.loads(document)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedMetadataError(f"Failed to parse metadata document: {e}") from e
        return cls.from_dict(data)
