"""
Tests for the DuckDB adapter and the flat-file readers built on it.
"""

import asyncio
import os

import pytest

duckdb = pytest.importorskip("duckdb")

from sqlstudio.adapters.duckdb_adapter import DuckDBAdapter  # noqa: E402
from sqlstudio.adapters.exceptions import (  # noqa: E402
    ConnectionError,
    QueryTimeoutError,
    TableNotFoundError,
    UserQueryError,
)
from sqlstudio.adapters.files_adapter import CsvAdapter, ParquetAdapter  # noqa: E402


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def duckdb_file(tmp_path):
    path = tmp_path / "analytics.duckdb"
    conn = duckdb.connect(str(path))
    conn.execute("CREATE TABLE items (id INTEGER PRIMARY KEY, label VARCHAR, price DECIMAL(6, 2))")
    conn.execute("INSERT INTO items VALUES (1, 'pen', 1.50), (2, 'ink', 3.25), (3, 'pad', NULL)")
    conn.execute("CREATE TABLE tags (name VARCHAR)")
    conn.execute("CREATE VIEW cheap AS SELECT * FROM items WHERE price < 2")
    conn.close()
    return path


@pytest.fixture
def adapter(duckdb_file):
    adapter = DuckDBAdapter({"database": str(duckdb_file)})
    run(adapter.connect())
    yield adapter
    run(adapter.disconnect())


class TestDuckDBAdapter:
    """Tests for DuckDBAdapter."""

    def test_missing_file(self, tmp_path):
        adapter = DuckDBAdapter({"database": str(tmp_path / "missing.duckdb")})
        with pytest.raises(ConnectionError):
            run(adapter.connect())
        run(adapter.disconnect())
        assert not (tmp_path / "missing.duckdb").exists()

    def test_overview(self, adapter, duckdb_file):
        overview = run(adapter.overview())
        assert overview.file_name == duckdb_file.name
        assert overview.tables == 2
        assert overview.views == 1
        assert overview.triggers == 0
        assert overview.sqlite_version.startswith("v")
        assert [(c.name, c.count) for c in overview.row_counts] == [("items", 3), ("tags", 0)]
        assert [(c.name, c.count) for c in overview.column_counts] == [("items", 3), ("tags", 1)]

    def test_tables(self, adapter):
        tables = run(adapter.tables())
        assert [(c.name, c.count) for c in tables.tables] == [("tags", 0), ("items", 3)]

    def test_table_detail(self, adapter):
        detail = run(adapter.table("items"))
        assert detail.row_count == 3
        assert detail.column_count == 3
        assert "CREATE TABLE" in detail.sql
        assert detail.table_size.endswith("B")

    def test_large_file_skips_table_size(self, adapter, monkeypatch):
        monkeypatch.setattr(os.path, "getsize", lambda path: 6_000_000_000)
        assert run(adapter.table("items")).table_size == "> 5GB"

    def test_unknown_table(self, adapter):
        with pytest.raises(TableNotFoundError):
            run(adapter.table("missing"))

    def test_table_data(self, adapter):
        data = run(adapter.table_data("items", 1))
        assert data.columns == ["id", "label", "price"]
        assert data.rows == [[1, "pen", "1.50"], [2, "ink", "3.25"], [3, "pad", None]]

    def test_autocomplete(self, adapter):
        catalog = run(adapter.tables_with_columns())
        assert [t.table_name for t in catalog.tables] == ["tags", "items"]
        assert catalog.tables[1].columns == ["id", "label", "price"]

    def test_erd_marks_primary_key_without_relationships(self, adapter):
        erd = run(adapter.erd())
        items = next(t for t in erd.tables if t.name == "items")
        columns = {c.name: c for c in items.columns}
        assert columns["id"].is_primary_key
        assert not columns["label"].is_primary_key
        assert columns["label"].nullable
        assert erd.relationships == []

    def test_query(self, adapter):
        result = run(adapter.query("SELECT 1 + 1 AS answer"))
        assert result.columns == ["answer"]
        assert result.rows == [[2]]

    def test_bad_query(self, adapter):
        with pytest.raises(UserQueryError):
            run(adapter.query("SELECT * FROM nowhere"))


    def test_timeout_interrupts_and_frees_the_connection(self, duckdb_file):
        adapter = DuckDBAdapter({"database": str(duckdb_file)}, query_timeout=0.3)

        async def scenario():
            await adapter.connect()
            try:
                with pytest.raises(QueryTimeoutError):
                    await adapter.query("SELECT count(*) FROM range(1000000000000) t(i) WHERE i % 7 = 3")
                return await adapter.query("SELECT 42 AS answer")
            finally:
                await adapter.disconnect()

        assert run(scenario()).rows == [[42]]


class TestCsvAdapter:
    @pytest.fixture
    def csv_adapter(self, tmp_path):
        path = tmp_path / "people.csv"
        path.write_text("id,name\n1,ann\n2,ben\n")
        adapter = CsvAdapter({"path": str(path)})
        run(adapter.connect())
        yield adapter
        run(adapter.disconnect())

    def test_view_named_after_file(self, csv_adapter):
        tables = run(csv_adapter.tables())
        assert [(c.name, c.count) for c in tables.tables] == [("people", 2)]

    def test_table_detail(self, csv_adapter):
        detail = run(csv_adapter.table("people"))
        assert detail.sql is None
        assert detail.index_count == 0
        assert detail.column_count == 2

    def test_data_and_query(self, csv_adapter):
        assert run(csv_adapter.table_data("people", 1)).rows == [[1, "ann"], [2, "ben"]]
        result = run(csv_adapter.query("SELECT name FROM people WHERE id = 2"))
        assert result.rows == [["ben"]]

    def test_erd_has_one_table(self, csv_adapter):
        erd = run(csv_adapter.erd())
        assert [t.name for t in erd.tables] == ["people"]
        assert erd.relationships == []

    def test_missing_file(self, tmp_path):
        adapter = CsvAdapter({"path": str(tmp_path / "nope.csv")})
        with pytest.raises(ConnectionError):
            run(adapter.connect())
        run(adapter.disconnect())


class TestParquetAdapter:
    def test_round_trip_through_view(self, tmp_path):
        path = tmp_path / "events.parquet"
        conn = duckdb.connect()
        conn.execute(
            f"COPY (SELECT range AS id, 'e' || CAST(range AS VARCHAR) AS kind FROM range(60)) "
            f"TO '{path}' (FORMAT PARQUET)"
        )
        conn.close()

        adapter = ParquetAdapter({"path": str(path)})

        async def scenario():
            await adapter.connect()
            try:
                return (
                    await adapter.overview(),
                    await adapter.table_data("events", 2),
                    await adapter.tables_with_columns(),
                )
            finally:
                await adapter.disconnect()

        overview, page, catalog = run(scenario())
        assert overview.tables == 1
        assert overview.file_name == "events.parquet"
        assert [(c.name, c.count) for c in overview.row_counts] == [("events", 60)]
        assert len(page.rows) == 10
        assert page.rows[0] == [50, "e50"]
        assert [(t.table_name, t.columns) for t in catalog.tables] == [("events", ["id", "kind"])]
