"""
DuckDB Adapter for SQL Studio

DuckDB is an embedded analytical database. A DuckDB connection must not be
used from several threads at once, so this adapter is SERIALIZED on a
single-owner worker; timed-out queries are stopped with interrupt().

Catalog facilities: duckdb_tables(), duckdb_columns(), duckdb_indexes(),
duckdb_views() and pragma_storage_info() for block accounting. Foreign-key
metadata is not read; the ERD has no relationships.

The columnar-file and flat-file readers (files_adapter.py) reuse this
adapter over an in-memory database.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

try:
    import duckdb
    DUCKDB_AVAILABLE = True
except ImportError:
    DUCKDB_AVAILABLE = False
    duckdb = None

from sqlstudio.adapters.base import (
    DEFAULT_QUERY_TIMEOUT,
    AdapterResult,
    BlockingAdapter,
    ConnectionError,
)
from sqlstudio.adapters.formatting import (
    LARGE_FILE_PLACEHOLDER,
    format_size,
    is_large_file,
    ranked,
)
from sqlstudio.adapters.governor import QueryTicket, tracked
from sqlstudio.adapters.schema import assemble_erd, fill_counts, group_columns, is_yes
from sqlstudio.models import AutocompleteCatalog, Erd, Overview, TableDetail

logger = logging.getLogger(__name__)


# =============================================================================
# CATALOG QUERIES
# =============================================================================

_CURRENT = "database_name = current_database() AND schema_name = current_schema()"

TABLE_NAMES = f"""
SELECT table_name FROM duckdb_tables()
WHERE {_CURRENT} AND NOT internal AND NOT temporary
ORDER BY table_name
"""

INDEX_COUNT = f"SELECT count(*) FROM duckdb_indexes() WHERE {_CURRENT}"

VIEW_COUNT = f"SELECT count(*) FROM duckdb_views() WHERE {_CURRENT} AND NOT internal"

COLUMN_COUNTS = f"SELECT table_name, column_count FROM duckdb_tables() WHERE {_CURRENT}"

INDEX_COUNTS = f"SELECT table_name, index_count FROM duckdb_tables() WHERE {_CURRENT}"

TABLE_INFO = f"""
SELECT sql, column_count, index_count FROM duckdb_tables()
WHERE {_CURRENT} AND table_name = ?
"""

TABLE_COLUMNS = f"""
SELECT column_name FROM duckdb_columns()
WHERE {_CURRENT} AND table_name = ?
ORDER BY column_index
"""

ALL_COLUMNS = f"""
SELECT c.table_name, c.column_name, c.data_type, c.is_nullable
FROM duckdb_columns() c
JOIN duckdb_tables() t
    ON c.database_name = t.database_name
    AND c.schema_name = t.schema_name
    AND c.table_name = t.table_name
WHERE c.database_name = current_database()
    AND c.schema_name = current_schema()
    AND NOT t.internal
ORDER BY c.table_name, c.column_index
"""

PRIMARY_KEYS = f"""
SELECT table_name, unnest(constraint_column_names)
FROM duckdb_constraints()
WHERE {_CURRENT} AND constraint_type = 'PRIMARY KEY'
"""

BLOCK_SIZE = "SELECT block_size FROM pragma_database_size() WHERE database_name = current_database()"


def sql_string(value: str) -> str:
    """Render a SQL string literal, doubling embedded single quotes."""
    escaped = value.replace("'", "''")
    return f"'{escaped}'"


class DuckDBAdapter(BlockingAdapter):
    """
    Adapter for DuckDB database files.

    Config options:
        database: Path to an existing DuckDB file (required)
        read_only: Open in read-only mode (default: False)

    Example:
        adapter = DuckDBAdapter({"database": "analytics.duckdb"})
        await adapter.connect()
        result = await adapter.query("SELECT 1 + 1 AS answer")
    """

    ENGINE = "duckdb"
    SERIALIZED = True
    DRIVER_ERRORS = (duckdb.Error,) if DUCKDB_AVAILABLE else ()

    def __init__(self, config: Optional[Dict[str, Any]] = None, query_timeout: float = DEFAULT_QUERY_TIMEOUT):
        """Initialize DuckDB adapter."""
        super().__init__(config or {}, query_timeout)

        if not DUCKDB_AVAILABLE:
            raise ConnectionError(
                "DuckDB not installed. Run: pip install duckdb",
                engine=self.ENGINE
            )

        self.database = self.config.get("database")
        self.read_only = self.config.get("read_only", False)
        self._connection = None

    def describe(self) -> str:
        return str(self.database)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open(self) -> None:
        if not self.database or not os.path.isfile(self.database):
            raise ConnectionError(
                f"Database file not found: {self.database}",
                engine=self.ENGINE
            )
        self._connection = duckdb.connect(database=self.database, read_only=self.read_only)
        logger.info(f"DuckDB {duckdb.__version__} opened: {self.database}")

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def interrupt(self, handle: Any) -> None:
        handle.interrupt()

    # -------------------------------------------------------------------------
    # Primitives
    # -------------------------------------------------------------------------

    def execute(
        self,
        sql: str,
        params: Optional[Sequence[Any]] = None,
        ticket: Optional[QueryTicket] = None
    ) -> AdapterResult:
        # The connection doubles as its own DB-API cursor
        with tracked(ticket, self._connection):
            return self._timed_fetch(self._connection, sql, params)

    def list_tables(self) -> List[str]:
        return self.execute(TABLE_NAMES).first_column()

    def table_columns(self, name: str) -> List[str]:
        return self.execute(TABLE_COLUMNS, [name]).first_column()

    # -------------------------------------------------------------------------
    # Catalog operations
    # -------------------------------------------------------------------------

    def _file_times(self) -> Dict[str, Optional[datetime]]:
        stat = os.stat(self.database)
        birth_time = getattr(stat, "st_birthtime", None)
        return {
            "created": datetime.fromtimestamp(birth_time, tz=timezone.utc) if birth_time else None,
            "modified": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
        }

    def get_overview(self) -> Overview:
        names = self.list_tables()

        return Overview(
            file_name=os.path.basename(self.database),
            db_size=format_size(os.path.getsize(self.database)),
            sqlite_version=self.scalar("SELECT version()"),
            tables=len(names),
            indexes=self.scalar(INDEX_COUNT),
            triggers=0,
            views=self.scalar(VIEW_COUNT),
            row_counts=ranked((name, self.count_rows(name)) for name in names),
            column_counts=ranked(fill_counts(names, self.execute(COLUMN_COUNTS).rows)),
            index_counts=ranked(fill_counts(names, self.execute(INDEX_COUNTS).rows)),
            **self._file_times()
        )

    def get_table(self, name: str) -> TableDetail:
        self.ensure_table(name)
        sql, column_count, index_count = self.execute(TABLE_INFO, [name]).rows[0]

        return TableDetail(
            name=name,
            sql=sql,
            row_count=self.count_rows(name),
            column_count=column_count,
            index_count=index_count,
            table_size=self._table_size(name),
        )

    def _table_size(self, name: str) -> str:
        if is_large_file(self.database):
            return LARGE_FILE_PLACEHOLDER
        blocks = self.scalar(
            f"SELECT count(DISTINCT block_id) FROM pragma_storage_info({sql_string(name)}) "
            "WHERE block_id IS NOT NULL"
        )
        return format_size((blocks or 0) * (self.scalar(BLOCK_SIZE) or 0))

    def get_tables_with_columns(self) -> AutocompleteCatalog:
        return AutocompleteCatalog(tables=group_columns(self.execute(ALL_COLUMNS).rows))

    def get_erd(self) -> Erd:
        columns = [
            (table, column, data_type, is_yes(nullable))
            for table, column, data_type, nullable in self.execute(ALL_COLUMNS).rows
        ]
        primary_keys = {tuple(row) for row in self.execute(PRIMARY_KEYS).rows}
        return assemble_erd(columns, primary_keys)
