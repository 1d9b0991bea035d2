"""
Canonical Value Model

Every cell leaving an adapter is converted into one of a closed set of
JSON-safe scalar kinds:

    NULL     -> None
    BOOLEAN  -> bool
    INTEGER  -> int (any width)
    FLOAT    -> float (finite only)
    TEXT     -> str
    BINARY   -> list of byte values (0-255)
    OPAQUE   -> str, the value's own human-readable rendering

Values are converted fresh per cell; nothing here caches or mutates input.
"""

import json
import math
import uuid
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, List, Sequence, Union


CanonicalValue = Union[None, bool, int, float, str, List[int]]


class ValueKind(str, Enum):
    """Tag of a canonical value."""
    NULL = "null"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    FLOAT = "float"
    TEXT = "text"
    BINARY = "binary"
    OPAQUE = "opaque"


_BINARY_TYPES = (bytes, bytearray, memoryview)


def classify(value: Any) -> ValueKind:
    """Return the canonical kind a native driver value maps to."""
    if value is None:
        return ValueKind.NULL
    # bool is a subclass of int, check it first
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, int):
        return ValueKind.INTEGER
    if isinstance(value, float):
        return ValueKind.FLOAT if math.isfinite(value) else ValueKind.OPAQUE
    if isinstance(value, str):
        return ValueKind.TEXT
    if isinstance(value, _BINARY_TYPES):
        return ValueKind.BINARY
    return ValueKind.OPAQUE


def render_opaque(value: Any) -> str:
    """Human-readable rendering for values outside the scalar kinds."""
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return str(value)
    if isinstance(value, (Decimal, uuid.UUID)):
        return str(value)
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str)
    return str(value)


def to_canonical(value: Any) -> CanonicalValue:
    """Convert one native value into its canonical form."""
    kind = classify(value)
    if kind is ValueKind.NULL:
        return None
    if kind is ValueKind.BOOLEAN:
        return bool(value)
    if kind is ValueKind.INTEGER:
        return int(value)
    if kind is ValueKind.FLOAT:
        return float(value)
    if kind is ValueKind.TEXT:
        return value
    if kind is ValueKind.BINARY:
        return list(bytes(value))
    return render_opaque(value)


def canonical_row(row: Sequence[Any]) -> List[CanonicalValue]:
    return [to_canonical(value) for value in row]


def canonical_rows(rows: Iterable[Sequence[Any]]) -> List[List[CanonicalValue]]:
    return [canonical_row(row) for row in rows]
