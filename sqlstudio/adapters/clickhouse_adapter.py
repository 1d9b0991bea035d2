"""
ClickHouse Adapter for SQL Studio

ClickHouse is a column-store analytic engine. Introspection goes through the
system database (system.tables, system.columns, system.parts) for the
connection's current database.

Notes:
- The HTTP client is shared by the worker threads; session ids are disabled
  so overlapping queries are allowed
- There are no indexes in the relational sense; a table's index count is
  the number of columns in its primary or sorting key
- Foreign keys do not exist; the ERD never has relationships
- Sizes come from formatReadableSize() over active parts
- Free-form queries carry their own query_id; a timed-out one is stopped
  server-side with KILL QUERY

Requirements:
    pip install clickhouse-connect
"""

import logging
import time
import uuid
from typing import Any, Dict, List, Optional, Sequence, Union

try:
    import clickhouse_connect
    from clickhouse_connect.driver.exceptions import ClickHouseError
    CLICKHOUSE_AVAILABLE = True
except ImportError:
    CLICKHOUSE_AVAILABLE = False
    clickhouse_connect = None
    ClickHouseError = None

from sqlstudio.adapters.base import (
    DEFAULT_QUERY_TIMEOUT,
    AdapterResult,
    BlockingAdapter,
    ConnectionError,
)
from sqlstudio.adapters.formatting import ranked
from sqlstudio.adapters.governor import QueryTicket, tracked
from sqlstudio.adapters.schema import assemble_erd, fill_counts, group_columns
from sqlstudio.models import AutocompleteCatalog, Erd, Overview, TableDetail

logger = logging.getLogger(__name__)


# =============================================================================
# CATALOG QUERIES
# =============================================================================

TABLE_NAMES = """
SELECT name FROM system.tables
WHERE database = currentDatabase() AND NOT is_temporary AND engine NOT LIKE '%View'
ORDER BY name
"""

OBJECT_COUNTS = """
SELECT
    (SELECT count() FROM system.tables
        WHERE database = currentDatabase() AND NOT is_temporary AND engine NOT LIKE '%View'),
    (SELECT count() FROM system.columns
        WHERE database = currentDatabase() AND (is_in_primary_key OR is_in_sorting_key)),
    (SELECT count() FROM system.tables
        WHERE database = currentDatabase() AND engine LIKE '%View')
"""

DATABASE_SIZE = """
SELECT formatReadableSize(sum(bytes_on_disk)) FROM system.parts
WHERE database = currentDatabase() AND active
"""

COLUMN_COUNTS = """
SELECT table, count() FROM system.columns
WHERE database = currentDatabase()
GROUP BY table
"""

INDEX_COUNTS = """
SELECT table, countIf(is_in_primary_key OR is_in_sorting_key) FROM system.columns
WHERE database = currentDatabase()
GROUP BY table
"""

TABLE_DDL = """
SELECT create_table_query FROM system.tables
WHERE database = currentDatabase() AND name = {table:String}
"""

TABLE_INDEX_COUNT = """
SELECT count() FROM system.columns
WHERE database = currentDatabase() AND table = {table:String}
    AND (is_in_primary_key OR is_in_sorting_key)
"""

TABLE_SIZE = """
SELECT formatReadableSize(sum(bytes_on_disk)) FROM system.parts
WHERE database = currentDatabase() AND table = {table:String} AND active
"""

TABLE_COLUMNS = """
SELECT name FROM system.columns
WHERE database = currentDatabase() AND table = {table:String}
ORDER BY position
"""

ALL_COLUMNS = """
SELECT c.table, c.name, c.type, c.is_in_primary_key
FROM system.columns c
WHERE c.database = currentDatabase()
    AND c.table IN (
        SELECT name FROM system.tables
        WHERE database = currentDatabase() AND NOT is_temporary AND engine NOT LIKE '%View'
    )
ORDER BY c.table, c.position
"""

KILL_QUERY = "KILL QUERY WHERE query_id = {query_id:String} ASYNC"


class ClickHouseAdapter(BlockingAdapter):
    """
    Adapter for ClickHouse database.

    Config options:
        host: ClickHouse server host (default: localhost)
        port: HTTP(S) port (default: 8123, or 8443 when secure)
        username: Username (default: "default")
        password: Password (default: "")
        database: Database to introspect (default: "default")
        secure: Use HTTPS (default: False)
        connect_timeout: Connection timeout in seconds (default: 10)
        pool_size: Worker threads sharing the client (default: 5)

    Example:
        adapter = ClickHouseAdapter({
            "host": "localhost",
            "username": "default",
            "database": "analytics"
        })
        await adapter.connect()
    """

    ENGINE = "clickhouse"
    QUOTE_OPEN = "`"
    QUOTE_CLOSE = "`"
    DRIVER_ERRORS = (ClickHouseError,) if CLICKHOUSE_AVAILABLE else ()

    def __init__(self, config: Dict[str, Any], query_timeout: float = DEFAULT_QUERY_TIMEOUT):
        super().__init__(config, query_timeout)

        if not CLICKHOUSE_AVAILABLE:
            raise ConnectionError(
                "clickhouse-connect not installed. Run: pip install clickhouse-connect",
                engine=self.ENGINE
            )

        self.host = config.get("host") or "localhost"
        self.secure = bool(config.get("secure", False))
        self.port = int(config.get("port") or (8443 if self.secure else 8123))
        self.username = config.get("username") or "default"
        self.password = config.get("password") or ""
        self.database = config.get("database") or "default"
        self.connect_timeout = config.get("connect_timeout", 10)

        self._client = None

    def describe(self) -> str:
        scheme = "https" if self.secure else "http"
        return f"{scheme}://{self.host}:{self.port}/{self.database}"

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open(self) -> None:
        self._client = clickhouse_connect.get_client(
            host=self.host,
            port=self.port,
            username=self.username,
            password=self.password,
            database=self.database,
            secure=self.secure,
            connect_timeout=self.connect_timeout,
            autogenerate_session_id=False,
        )
        if not self._client.ping():
            raise ConnectionError(
                f"ClickHouse server did not answer ping at {self.describe()}",
                engine=self.ENGINE
            )

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    # -------------------------------------------------------------------------
    # Primitives
    # -------------------------------------------------------------------------

    def interrupt(self, handle: str) -> None:
        self._client.command(KILL_QUERY, parameters={"query_id": handle})

    def execute(
        self,
        sql: str,
        params: Optional[Union[Sequence[Any], Dict[str, Any]]] = None,
        ticket: Optional[QueryTicket] = None
    ) -> AdapterResult:
        """Run a statement. Catalog parameters use server-side {name:Type} binding."""
        start_time = time.perf_counter()
        if ticket is None:
            result = self._client.query(sql, parameters=params or None)
        else:
            query_id = f"sqlstudio-{uuid.uuid4()}"
            with tracked(ticket, query_id):
                result = self._client.query(sql, parameters=params or None, settings={"query_id": query_id})
        return AdapterResult(
            rows=[tuple(row) for row in result.result_rows],
            columns=list(result.column_names),
            execution_time_ms=(time.perf_counter() - start_time) * 1000,
            engine=self.ENGINE,
            sql=sql
        )

    def list_tables(self) -> List[str]:
        return self.execute(TABLE_NAMES).first_column()

    def table_columns(self, name: str) -> List[str]:
        return self.execute(TABLE_COLUMNS, {"table": name}).first_column()

    # -------------------------------------------------------------------------
    # Catalog operations
    # -------------------------------------------------------------------------

    def get_overview(self) -> Overview:
        tables, indexes, views = self.execute(OBJECT_COUNTS).rows[0]
        names = self.list_tables()

        return Overview(
            file_name=self.database,
            db_size=self.scalar(DATABASE_SIZE) or "0.00 B",
            sqlite_version=self._client.server_version,
            tables=tables,
            indexes=indexes,
            triggers=0,
            views=views,
            row_counts=ranked((name, self.count_rows(name)) for name in names),
            column_counts=ranked(fill_counts(names, self.execute(COLUMN_COUNTS).rows)),
            index_counts=ranked(fill_counts(names, self.execute(INDEX_COUNTS).rows)),
        )

    def get_table(self, name: str) -> TableDetail:
        self.ensure_table(name)
        params = {"table": name}

        return TableDetail(
            name=name,
            sql=self.scalar(TABLE_DDL, params),
            row_count=self.count_rows(name),
            column_count=len(self.table_columns(name)),
            index_count=self.scalar(TABLE_INDEX_COUNT, params) or 0,
            table_size=self.scalar(TABLE_SIZE, params) or "0.00 B",
        )

    def get_tables_with_columns(self) -> AutocompleteCatalog:
        return AutocompleteCatalog(tables=group_columns(self.execute(ALL_COLUMNS).rows))

    def get_erd(self) -> Erd:
        columns = []
        primary_keys = set()
        for table, column, data_type, in_primary_key in self.execute(ALL_COLUMNS).rows:
            columns.append((table, column, data_type, data_type.startswith("Nullable(")))
            if in_primary_key:
                primary_keys.add((table, column))
        return assemble_erd(columns, primary_keys)
