"""
Tests for formatting, ranking and pagination helpers.
"""

import pytest

from sqlstudio.adapters.formatting import (
    by_name_length,
    format_size,
    is_large_file,
    listed,
    ranked,
    redact_url,
)
from sqlstudio.adapters.pagination import ROWS_PER_PAGE, page_window, sort_key


class TestFormatSize:
    def test_bytes(self):
        assert format_size(0) == "0.00 B"
        assert format_size(512) == "512.00 B"

    def test_binary_units(self):
        assert format_size(1536) == "1.50 KB"
        assert format_size(1024 ** 2) == "1.00 MB"
        assert format_size(3 * 1024 ** 3) == "3.00 GB"

    def test_caps_at_largest_unit(self):
        assert format_size(2048 * 1024 ** 4) == "2048.00 TB"


class TestRanking:
    def test_ranked_is_descending_with_name_ties(self):
        counts = ranked([("b", 2), ("a", 2), ("c", 9)])
        assert [(c.name, c.count) for c in counts] == [("c", 9), ("a", 2), ("b", 2)]

    def test_listed_is_ascending(self):
        counts = listed([("orders", 5), ("users", 3)])
        assert [(c.name, c.count) for c in counts] == [("users", 3), ("orders", 5)]

    def test_by_name_length(self):
        assert by_name_length(["orders", "users", "ab", "aa"]) == ["aa", "ab", "users", "orders"]


class TestLargeFileGuard:
    def test_small_file_is_not_large(self, tmp_path):
        path = tmp_path / "small.db"
        path.write_bytes(b"x" * 10)
        assert not is_large_file(str(path))


class TestRedactUrl:
    def test_password_is_hidden(self):
        assert redact_url("postgresql://bob:secret@db:5432/app") == "postgresql://bob:***@db:5432/app"

    def test_url_without_password_is_unchanged(self):
        assert redact_url("postgresql://db/app") == "postgresql://db/app"


class TestPagination:
    def test_first_page(self):
        assert page_window(1) == (ROWS_PER_PAGE, 0)

    def test_later_page(self):
        assert page_window(3) == (50, 100)

    def test_page_below_one_is_rejected(self):
        with pytest.raises(ValueError):
            page_window(0)

    def test_sort_key_is_first_column(self):
        assert sort_key(["id", "name"]) == "id"
        assert sort_key([]) is None
