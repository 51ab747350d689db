"""
Core data types shared by the change feed and the snapshot builder.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from .exceptions import MalformedEventError

# CouchDB 2.x+ sequences look like "12-g1AAAAEzeJzLYWBg..."
_OPAQUE_SEQUENCE = re.compile(r"^(\d+)(?:-.*)?$", re.DOTALL)


def parse_sequence(value: Any) -> int | None:
    """Extract the numeric sequence from a feed ``seq`` value.

    Accepts integers, digit strings and CouchDB's opaque ``"<N>-<hash>"``
    strings. Returns None for anything else.
    """
    # bool is an int subclass
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        match = _OPAQUE_SEQUENCE.match(value)
        if match:
            return int(match.group(1))
    return None


@dataclass(frozen=True)
class ChangeEvent:
    """A single record from the continuous change feed.

    Attributes:
        sequence: Numeric, monotonically increasing sequence number
        document_id: ID of the changed document
        deleted: Whether the change was a deletion
        raw_sequence: The ``seq`` value exactly as the server sent it
    """

    sequence: int
    document_id: str
    deleted: bool = False
    raw_sequence: Any = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], line: str = "") -> ChangeEvent:
        """Create from a decoded feed record.

        Raises:
            MalformedEventError: If ``seq`` or ``id`` are missing or mistyped
        """
        if "seq" not in data:
            raise MalformedEventError(line, "missing 'seq'")
        sequence = parse_sequence(data["seq"])
        if sequence is None:
            raise MalformedEventError(line, f"unsupported 'seq' value: {data['seq']!r}")

        document_id = data.get("id")
        if not isinstance(document_id, str):
            raise MalformedEventError(line, "missing or non-string 'id'")

        return cls(
            sequence=sequence,
            document_id=document_id,
            deleted=bool(data.get("deleted", False)),
            raw_sequence=data["seq"],
        )

    @classmethod
    def from_line(cls, line: str) -> ChangeEvent | None:
        """Parse one non-blank feed line.

        Returns None for the ``last_seq`` trailer CouchDB writes before it
        closes a feed.

        Raises:
            MalformedEventError: If the line is not a JSON object of the
                expected shape
        """
        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            raise MalformedEventError(line, f"invalid JSON: {e.msg}") from e
        except RecursionError as e:
            raise MalformedEventError(line, "JSON nested too deeply") from e

        if not isinstance(data, dict):
            raise MalformedEventError(line, "record is not a JSON object")

        if "last_seq" in data and "seq" not in data:
            return None

        return cls.from_dict(data, line)


@dataclass(frozen=True)
class Document:
    """A document fetched in bulk from ``_all_docs``.

    Attributes:
        id: Document ID
        content: Full document body
        revision: Revision (``_rev``) if present
    """

    id: str
    content: dict[str, Any]
    revision: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Document | None:
        """Create from an ``_all_docs?include_docs=true`` row.

        Returns None for rows without an object body (deleted or error rows).
        """
        doc = row.get("doc")
        doc_id = row.get("id")
        if not isinstance(doc, dict) or not isinstance(doc_id, str):
            return None
        revision = doc.get("_rev")
        return cls(id=doc_id, content=doc, revision=revision if isinstance(revision, str) else None)


@dataclass(frozen=True)
class ReloadRequest:
    """Message posted by the debouncer when a quiet period ends.

    The document ID is informational; every reload is a full reload.
    """

    document_id: str
    sequence: int
    requested_at: datetime = field(default_factory=lambda: datetime.now(UTC))
