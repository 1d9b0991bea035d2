"""
Tests for the canonical value model.
"""

import math
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlstudio.adapters.values import ValueKind, canonical_row, classify, to_canonical


class TestClassify:
    """Tests for classify()."""

    def test_scalar_kinds(self):
        assert classify(None) is ValueKind.NULL
        assert classify(True) is ValueKind.BOOLEAN
        assert classify(7) is ValueKind.INTEGER
        assert classify(1.5) is ValueKind.FLOAT
        assert classify("x") is ValueKind.TEXT
        assert classify(b"\x00") is ValueKind.BINARY

    def test_bool_is_not_integer(self):
        """bool subclasses int but keeps its own kind."""
        assert classify(False) is ValueKind.BOOLEAN

    def test_non_finite_floats_are_opaque(self):
        assert classify(math.inf) is ValueKind.OPAQUE
        assert classify(math.nan) is ValueKind.OPAQUE

    def test_everything_else_is_opaque(self):
        assert classify(Decimal("1.10")) is ValueKind.OPAQUE
        assert classify(date(2024, 1, 2)) is ValueKind.OPAQUE


class TestToCanonical:
    """Tests for to_canonical()."""

    def test_binary_becomes_byte_list(self):
        assert to_canonical(b"\x01\xff") == [1, 255]
        assert to_canonical(bytearray(b"ab")) == [97, 98]
        assert to_canonical(memoryview(b"\x00")) == [0]

    def test_large_integers_keep_precision(self):
        big = 2 ** 70
        assert to_canonical(big) == big

    def test_opaque_renderings(self):
        assert to_canonical(Decimal("12.50")) == "12.50"
        assert to_canonical(date(2024, 1, 2)) == "2024-01-02"
        assert to_canonical(datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)) == "2024-01-02T03:04:05+00:00"
        value = uuid.UUID("12345678-1234-5678-1234-567812345678")
        assert to_canonical(value) == "12345678-1234-5678-1234-567812345678"
        assert to_canonical({"a": 1}) == '{"a": 1}'
        assert to_canonical(math.inf) == "inf"

    def test_row_keeps_length_and_order(self):
        row = (1, None, "x", b"\x02", 2.5, True)
        assert canonical_row(row) == [1, None, "x", [2], 2.5, True]
