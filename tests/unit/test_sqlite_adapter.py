"""
Tests for the SQLite adapter against a real database file.
"""

import asyncio
import os
import sqlite3
import time

import pytest

from sqlstudio.adapters.exceptions import (
    ConnectionError,
    QueryTimeoutError,
    TableNotFoundError,
    UserQueryError,
)
from sqlstudio.adapters.sqlite_adapter import SQLiteAdapter


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def adapter(sqlite_db):
    """Connected adapter over the fixture database."""
    adapter = SQLiteAdapter({"database": str(sqlite_db)}, query_timeout=5.0)
    run(adapter.connect())
    yield adapter
    run(adapter.disconnect())


class TestConnect:
    """Tests for opening database files."""

    def test_missing_file(self, tmp_path):
        adapter = SQLiteAdapter({"database": str(tmp_path / "missing.db")})
        with pytest.raises(ConnectionError):
            run(adapter.connect())
        run(adapter.disconnect())
        assert not (tmp_path / "missing.db").exists()

    def test_not_a_database(self, tmp_path):
        path = tmp_path / "notes.db"
        path.write_text("just some text, definitely not sqlite " * 50)
        adapter = SQLiteAdapter({"database": str(path)})
        with pytest.raises(ConnectionError):
            run(adapter.connect())
        run(adapter.disconnect())

    def test_database_is_required(self):
        with pytest.raises(ConnectionError):
            SQLiteAdapter({})

    def test_operations_need_a_connection(self, sqlite_db):
        adapter = SQLiteAdapter({"database": str(sqlite_db)})
        with pytest.raises(ConnectionError):
            run(adapter.tables())
        run(adapter.disconnect())


class TestCatalog:
    """Tests for the catalog operations."""

    def test_overview(self, adapter, sqlite_db):
        overview = run(adapter.overview())
        assert overview.file_name == sqlite_db.name
        assert overview.tables == 2
        assert overview.views == 0
        assert overview.triggers == 0
        assert overview.sqlite_version
        assert overview.modified is not None
        assert [(c.name, c.count) for c in overview.row_counts] == [("orders", 5), ("users", 3)]
        assert [(c.name, c.count) for c in overview.column_counts] == [("orders", 2), ("users", 2)]
        assert [(c.name, c.count) for c in overview.index_counts] == [("orders", 1), ("users", 1)]

    def test_overview_is_stable(self, adapter):
        assert run(adapter.overview()) == run(adapter.overview())

    def test_tables_listed_ascending(self, adapter):
        tables = run(adapter.tables())
        assert [(c.name, c.count) for c in tables.tables] == [("users", 3), ("orders", 5)]

    def test_table_detail(self, adapter):
        detail = run(adapter.table("users"))
        assert detail.name == "users"
        assert detail.sql.startswith("CREATE TABLE users")
        assert detail.row_count == 3
        assert detail.column_count == 2
        # INTEGER PRIMARY KEY is the rowid index
        assert detail.index_count == 1
        assert detail.table_size

    def test_large_file_skips_table_size(self, adapter, monkeypatch):
        monkeypatch.setattr(os.path, "getsize", lambda path: 6_000_000_000)
        assert run(adapter.table("users")).table_size == "> 5GB"

    def test_only_internal_tables_are_hidden(self, tmp_path):
        path = tmp_path / "names.db"
        conn = sqlite3.connect(path)
        conn.executescript("CREATE TABLE sqlite1 (id INTEGER); CREATE TABLE t (id INTEGER PRIMARY KEY AUTOINCREMENT);")
        conn.close()

        adapter = SQLiteAdapter({"database": str(path)})
        run(adapter.connect())
        try:
            names = [c.name for c in run(adapter.tables()).tables]
        finally:
            run(adapter.disconnect())
        # AUTOINCREMENT creates sqlite_sequence
        assert sorted(names) == ["sqlite1", "t"]

    def test_unknown_table(self, adapter):
        with pytest.raises(TableNotFoundError):
            run(adapter.table("nope"))
        with pytest.raises(TableNotFoundError):
            run(adapter.table_data("nope", 1))

    def test_table_name_is_not_spliced(self, adapter):
        with pytest.raises(TableNotFoundError):
            run(adapter.table("users; DROP TABLE users"))
        assert run(adapter.tables()).tables[0].name == "users"

    def test_autocomplete_orders_by_name_length(self, adapter):
        catalog = run(adapter.tables_with_columns())
        assert [(t.table_name, t.columns) for t in catalog.tables] == [
            ("users", ["id", "name"]),
            ("orders", ["id", "user_id"]),
        ]

    def test_erd(self, adapter):
        erd = run(adapter.erd())
        tables = {t.name: {c.name: c for c in t.columns} for t in erd.tables}
        assert set(tables) == {"users", "orders"}
        assert tables["users"]["id"].is_primary_key
        assert not tables["users"]["id"].nullable
        assert tables["users"]["name"].nullable
        assert not tables["orders"]["user_id"].nullable
        assert [
            (r.from_table, r.from_column, r.to_table, r.to_column) for r in erd.relationships
        ] == [("orders", "user_id", "users", "id")]


class TestTableData:
    def test_first_page(self, adapter):
        data = run(adapter.table_data("users", 1))
        assert data.columns == ["id", "name"]
        assert data.rows == [[1, "alice"], [2, "bob"], [3, "carol"]]

    def test_page_past_the_end_is_empty(self, adapter):
        assert run(adapter.table_data("users", 2)).rows == []

    def test_page_zero_is_rejected(self, adapter):
        with pytest.raises(ValueError):
            run(adapter.table_data("users", 0))

    def test_pages_hold_fifty_rows(self, tmp_path):
        import sqlite3

        path = tmp_path / "big.db"
        conn = sqlite3.connect(path)
        conn.execute("CREATE TABLE n (v INTEGER)")
        conn.executemany("INSERT INTO n VALUES (?)", [(i,) for i in range(120, 0, -1)])
        conn.commit()
        conn.close()

        adapter = SQLiteAdapter({"database": str(path)})
        run(adapter.connect())
        try:
            pages = [run(adapter.table_data("n", page)).rows for page in (1, 2, 3)]
        finally:
            run(adapter.disconnect())

        first, _, third = pages
        assert len(first) == 50
        assert first[0] == [1]
        assert len(third) == 20
        assert third[-1] == [120]
        values = [row[0] for rows in pages for row in rows]
        assert sorted(values) == list(range(1, 121))
        assert len(set(values)) == 120


class TestQuery:
    def test_count(self, adapter):
        result = run(adapter.query("select count(*) from users"))
        assert result.columns == ["count(*)"]
        assert result.rows == [[3]]

    def test_blob_becomes_byte_list(self, adapter):
        result = run(adapter.query("SELECT x'0102ff' AS b, NULL AS n, 1.5 AS f"))
        assert result.rows == [[[1, 2, 255], None, 1.5]]

    def test_duplicate_column_names_are_kept(self, adapter):
        result = run(adapter.query("SELECT 1 AS a, 2 AS a"))
        assert result.columns == ["a", "a"]

    def test_bad_sql(self, adapter):
        with pytest.raises(UserQueryError):
            run(adapter.query("SELEC nonsense"))

    def test_timeout_interrupts_and_frees_the_connection(self, sqlite_db, endless_query):
        adapter = SQLiteAdapter({"database": str(sqlite_db)}, query_timeout=0.2)

        async def scenario():
            await adapter.connect()
            try:
                with pytest.raises(QueryTimeoutError):
                    await adapter.query(endless_query)
                return await adapter.query("SELECT count(*) FROM orders")
            finally:
                await adapter.disconnect()

        assert run(scenario()).rows == [[5]]

    def test_timeout_leaves_running_catalog_read_alone(self, sqlite_db):
        adapter = SQLiteAdapter({"database": str(sqlite_db)}, query_timeout=0.1)

        async def scenario():
            await adapter.connect()
            try:
                await adapter._worker.run(adapter._connection.create_function, "nap", 1, time.sleep)
                slow_count = asyncio.ensure_future(
                    adapter._catalog(adapter.scalar, "SELECT count(*) FROM users WHERE nap(0.15) IS NULL")
                )
                await asyncio.sleep(0.05)
                # Queued behind the catalog read, so it times out before it starts
                with pytest.raises(QueryTimeoutError):
                    await adapter.query("SELECT 1")
                return await slow_count
            finally:
                await adapter.disconnect()

        assert run(scenario()) == 3

    def test_read_only_rejects_writes(self, sqlite_db):
        adapter = SQLiteAdapter({"database": str(sqlite_db), "read_only": True})

        async def scenario():
            await adapter.connect()
            try:
                await adapter.query("DELETE FROM users")
            finally:
                await adapter.disconnect()

        with pytest.raises(UserQueryError):
            run(scenario())
