"""
Document flattening.

Turns nested JSON documents into flat ``path -> value`` pairs rooted at the
database name and document ID:

    {"_id": "app", "db": {"host": "x", "port": 5}}
    -> {"config:app:db:host": "x", "config:app:db:port": 5}

Values are stored unrendered. ``render_scalar`` turns accepted scalar kinds
into strings at lookup time; anything else is reported as not found.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Iterator, Mapping
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any

from yarl import URL

from .types import Document

DEFAULT_DELIMITER = ":"
DEFAULT_RESERVED_PREFIX = "_"


class ArrayPolicy(Enum):
    """How array-valued fields are flattened.

    OPAQUE: The array is stored under its own path as a non-scalar value.
        The key shows up in child-key listings but lookups report not found.
    INDEXED: Each element gets its list index as the next path segment.
    """

    OPAQUE = "opaque"
    INDEXED = "indexed"


class ScalarKind(Enum):
    """Leaf value kinds that lookups will return."""

    BOOLEAN = "boolean"
    DATE = "date"
    FLOAT = "float"
    GUID = "guid"
    INTEGER = "integer"
    NULL = "null"
    RAW = "raw"
    STRING = "string"
    URI = "uri"


def classify_scalar(value: Any) -> ScalarKind | None:
    """Return the scalar kind of ``value``, or None if it is not a scalar."""
    if value is None:
        return ScalarKind.NULL
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return ScalarKind.BOOLEAN
    if isinstance(value, int):
        return ScalarKind.INTEGER
    if isinstance(value, (float, Decimal)):
        return ScalarKind.FLOAT
    if isinstance(value, str):
        return ScalarKind.STRING
    if isinstance(value, (datetime, date, time)):
        return ScalarKind.DATE
    if isinstance(value, uuid.UUID):
        return ScalarKind.GUID
    if isinstance(value, URL):
        return ScalarKind.URI
    if isinstance(value, (bytes, bytearray)):
        return ScalarKind.RAW
    return None


def render_scalar(value: Any) -> str | None:
    """Render an accepted scalar as its configuration string.

    Raises:
        TypeError: If ``value`` is not an accepted scalar kind
    """
    kind = classify_scalar(value)
    if kind is None:
        raise TypeError(f"Not a configuration scalar: {type(value).__name__}")
    if kind is ScalarKind.NULL:
        return None
    if kind is ScalarKind.BOOLEAN:
        return "true" if value else "false"
    if kind is ScalarKind.DATE:
        return value.isoformat()
    if kind is ScalarKind.RAW:
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def combine_path(segments: Iterable[str], delimiter: str = DEFAULT_DELIMITER) -> str:
    """Join path segments with the key delimiter."""
    return delimiter.join(segments)


def flatten_document(
    document: Document,
    database: str,
    *,
    delimiter: str = DEFAULT_DELIMITER,
    reserved_prefix: str = DEFAULT_RESERVED_PREFIX,
    array_policy: ArrayPolicy = ArrayPolicy.OPAQUE,
) -> dict[str, Any]:
    """Flatten one document into ``{path: value}`` pairs.

    The path starts with the database name and the document ID. Fields whose
    name starts with ``reserved_prefix`` are skipped at every depth.
    """
    prefix = combine_path((database, document.id), delimiter)
    return dict(_walk_object(document.content, prefix, delimiter, reserved_prefix, array_policy))


def _walk_object(
    node: Mapping[str, Any],
    path: str,
    delimiter: str,
    reserved_prefix: str,
    array_policy: ArrayPolicy,
) -> Iterator[tuple[str, Any]]:
    for name, value in node.items():
        if reserved_prefix and name.startswith(reserved_prefix):
            continue
        yield from _walk_value(value, path + delimiter + name, delimiter, reserved_prefix, array_policy)


def _walk_value(
    value: Any,
    path: str,
    delimiter: str,
    reserved_prefix: str,
    array_policy: ArrayPolicy,
) -> Iterator[tuple[str, Any]]:
    if isinstance(value, Mapping):
        yield from _walk_object(value, path, delimiter, reserved_prefix, array_policy)
    elif isinstance(value, list) and array_policy is ArrayPolicy.INDEXED:
        for index, item in enumerate(value):
            yield from _walk_value(item, f"{path}{delimiter}{index}", delimiter, reserved_prefix, array_policy)
    else:
        yield path, value


def flatten_documents(
    documents: Iterable[Document],
    database: str,
    *,
    delimiter: str = DEFAULT_DELIMITER,
    reserved_prefix: str = DEFAULT_RESERVED_PREFIX,
    array_policy: ArrayPolicy = ArrayPolicy.OPAQUE,
) -> dict[str, Any]:
    """Flatten every document into one fresh mapping. Last writer wins."""
    data: dict[str, Any] = {}
    for document in documents:
        data.update(
            flatten_document(
                document,
                database,
                delimiter=delimiter,
                reserved_prefix=reserved_prefix,
                array_policy=array_policy,
            )
        )
    return data
