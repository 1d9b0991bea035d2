"""
Microsoft SQL Server Adapter for SQL Studio

Supports SQL Server 2012+ and Azure SQL Database through pymssql. One schema
(default: dbo) is introspected through the sys catalog views and
INFORMATION_SCHEMA.

Features:
- SQLAlchemy QueuePool of autocommit pymssql connections, one per worker
  thread at a time; a connection that raised is invalidated, not reused
- Timed-out queries end their session with KILL <spid>
- Sizes from allocated 8 KB pages (sys.database_files, sys.allocation_units)
- Foreign keys via sys.foreign_key_columns

Requirements:
    pip install pymssql sqlalchemy
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

try:
    import pymssql
    PYMSSQL_AVAILABLE = True
except ImportError:
    PYMSSQL_AVAILABLE = False
    pymssql = None

from sqlalchemy.pool import QueuePool

from sqlstudio.adapters.base import (
    DEFAULT_QUERY_TIMEOUT,
    AdapterResult,
    BlockingAdapter,
    ConnectionError,
)
from sqlstudio.adapters.formatting import format_size, ranked
from sqlstudio.adapters.governor import QueryTicket, tracked
from sqlstudio.adapters.schema import assemble_erd, fill_counts, group_columns, is_yes
from sqlstudio.models import AutocompleteCatalog, Erd, Overview, TableDetail

logger = logging.getLogger(__name__)

PAGE_BYTES = 8192


# =============================================================================
# CATALOG QUERIES
# =============================================================================

_SCHEMA_TABLES = "sys.tables t JOIN sys.schemas s ON t.schema_id = s.schema_id"

TABLE_NAMES = f"SELECT t.name FROM {_SCHEMA_TABLES} WHERE s.name = %s ORDER BY t.name"

OBJECT_COUNTS = f"""
SELECT
    (SELECT count(*) FROM {_SCHEMA_TABLES} WHERE s.name = %(schema)s),
    (SELECT count(*) FROM sys.indexes i
        JOIN {_SCHEMA_TABLES} ON i.object_id = t.object_id
        WHERE i.type > 0 AND s.name = %(schema)s),
    (SELECT count(*) FROM sys.triggers tr
        JOIN {_SCHEMA_TABLES} ON tr.parent_id = t.object_id
        WHERE s.name = %(schema)s),
    (SELECT count(*) FROM sys.views v
        JOIN sys.schemas s ON v.schema_id = s.schema_id
        WHERE s.name = %(schema)s)
"""

DATABASE_SIZE = f"SELECT SUM(CAST(size AS bigint)) * {PAGE_BYTES} FROM sys.database_files"

SESSION_ID = "SELECT @@SPID"

VERSION = "SELECT CAST(SERVERPROPERTY('ProductVersion') AS nvarchar(128))"

COLUMN_COUNTS = """
SELECT table_name, count(*) FROM INFORMATION_SCHEMA.COLUMNS
WHERE table_schema = %s
GROUP BY table_name
"""

INDEX_COUNTS = f"""
SELECT t.name, count(i.index_id)
FROM {_SCHEMA_TABLES}
LEFT JOIN sys.indexes i ON i.object_id = t.object_id AND i.type > 0
WHERE s.name = %s
GROUP BY t.name
"""

TABLE_COLUMNS = """
SELECT column_name FROM INFORMATION_SCHEMA.COLUMNS
WHERE table_schema = %s AND table_name = %s
ORDER BY ordinal_position
"""

TABLE_INDEX_COUNT = f"""
SELECT count(*) FROM sys.indexes i
JOIN {_SCHEMA_TABLES} ON i.object_id = t.object_id
WHERE i.type > 0 AND s.name = %s AND t.name = %s
"""

TABLE_SIZE = f"""
SELECT SUM(CAST(a.total_pages AS bigint)) * {PAGE_BYTES}
FROM {_SCHEMA_TABLES}
JOIN sys.partitions p ON p.object_id = t.object_id
JOIN sys.allocation_units a ON a.container_id = p.partition_id
WHERE s.name = %s AND t.name = %s
"""

ALL_COLUMNS = """
SELECT c.table_name, c.column_name, c.data_type, c.is_nullable
FROM INFORMATION_SCHEMA.COLUMNS c
JOIN INFORMATION_SCHEMA.TABLES t
    ON c.table_schema = t.table_schema AND c.table_name = t.table_name
WHERE c.table_schema = %s AND t.table_type = 'BASE TABLE'
ORDER BY c.table_name, c.ordinal_position
"""

PRIMARY_KEYS = """
SELECT kcu.table_name, kcu.column_name
FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS tc
JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE kcu
    ON tc.constraint_name = kcu.constraint_name
    AND tc.table_schema = kcu.table_schema
    AND tc.table_name = kcu.table_name
WHERE tc.constraint_type = 'PRIMARY KEY' AND tc.table_schema = %s
"""

FOREIGN_KEYS = """
SELECT tp.name, cp.name, tr.name, cr.name
FROM sys.foreign_key_columns fkc
JOIN sys.tables tp ON fkc.parent_object_id = tp.object_id
JOIN sys.columns cp
    ON cp.object_id = fkc.parent_object_id AND cp.column_id = fkc.parent_column_id
JOIN sys.tables tr ON fkc.referenced_object_id = tr.object_id
JOIN sys.columns cr
    ON cr.object_id = fkc.referenced_object_id AND cr.column_id = fkc.referenced_column_id
WHERE SCHEMA_NAME(tp.schema_id) = %s AND SCHEMA_NAME(tr.schema_id) = %s
ORDER BY tp.name, fkc.constraint_column_id
"""


class SQLServerAdapter(BlockingAdapter):
    """
    Adapter for Microsoft SQL Server.

    Config options:
        host: Server hostname or IP (required)
        port: Server port (default: 1433)
        database: Database name (required)
        user: Username (required)
        password: Password (default: "")
        schema: Schema to introspect (default: dbo)
        login_timeout: Connection timeout in seconds (default: 30)
        application_name: Application identifier (default: 'SQL Studio')
        pool_size: Connections kept and worker threads (default: 5)

    Example:
        adapter = SQLServerAdapter({
            "host": "sqlserver.company.com",
            "database": "analytics",
            "user": "sa",
            "password": "secret"
        })
        await adapter.connect()
    """

    ENGINE = "sqlserver"
    QUOTE_OPEN = "["
    QUOTE_CLOSE = "]"
    DRIVER_ERRORS = (pymssql.Error,) if PYMSSQL_AVAILABLE else ()

    def __init__(self, config: Dict[str, Any], query_timeout: float = DEFAULT_QUERY_TIMEOUT):
        super().__init__(config, query_timeout)

        if not PYMSSQL_AVAILABLE:
            raise ConnectionError(
                "pymssql not installed. Run: pip install pymssql",
                engine=self.ENGINE
            )

        required = ["host", "database", "user"]
        missing = [k for k in required if not config.get(k)]
        if missing:
            raise ConnectionError(
                f"Missing required config: {', '.join(missing)}",
                engine=self.ENGINE
            )

        self.host = config["host"]
        self.port = int(config.get("port") or 1433)
        self.database = config["database"]
        self.user = config["user"]
        self.password = config.get("password") or ""
        self.schema = config.get("schema") or "dbo"
        self.login_timeout = config.get("login_timeout", 30)
        self.application_name = config.get("application_name", "SQL Studio")
        self.pool_size = max(1, int(config.get("pool_size", 5)))

        self._pool: Optional[QueuePool] = None

    def describe(self) -> str:
        return f"{self.host}:{self.port}/{self.database} (schema {self.schema})"

    def qualify(self, name: str) -> str:
        return f"{self.quote(self.schema)}.{self.quote(name)}"

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def _new_connection(self) -> Any:
        return pymssql.connect(
            server=self.host,
            port=str(self.port),
            database=self.database,
            user=self.user,
            password=self.password,
            login_timeout=self.login_timeout,
            appname=self.application_name,
            autocommit=True,
        )

    def open(self) -> None:
        self._pool = QueuePool(
            self._new_connection,
            pool_size=self.pool_size,
            max_overflow=0,
            timeout=self.login_timeout,
            use_lifo=True,
            reset_on_return=None,
        )
        with self._cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchall()

    def close(self) -> None:
        if self._pool is None:
            return
        self._pool.dispose()
        self._pool = None

    @contextmanager
    def _cursor(self) -> Iterator[Any]:
        conn = self._pool.connect()
        try:
            cursor = conn.cursor()
            try:
                yield cursor
            finally:
                cursor.close()
        except self.DRIVER_ERRORS:
            # A connection that raised mid-statement is discarded
            conn.invalidate()
            raise
        finally:
            conn.close()

    def interrupt(self, handle: int) -> None:
        # KILL ends the session; its pooled connection is invalidated when the statement fails
        killer = self._new_connection()
        try:
            cursor = killer.cursor()
            cursor.execute(f"KILL {int(handle)}")
        finally:
            killer.close()

    # -------------------------------------------------------------------------
    # Primitives
    # -------------------------------------------------------------------------

    def execute(
        self,
        sql: str,
        params: Optional[Sequence[Any]] = None,
        ticket: Optional[QueryTicket] = None
    ) -> AdapterResult:
        if isinstance(params, list):
            params = tuple(params)
        with self._cursor() as cursor:
            spid = None
            if ticket is not None:
                cursor.execute(SESSION_ID)
                spid = cursor.fetchall()[0][0]
            with tracked(ticket, spid):
                return self._timed_fetch(cursor, sql, params)

    def list_tables(self) -> List[str]:
        return self.execute(TABLE_NAMES, [self.schema]).first_column()

    def table_columns(self, name: str) -> List[str]:
        return self.execute(TABLE_COLUMNS, [self.schema, name]).first_column()

    def page_sql(self, name: str, order_by: str, limit: int, offset: int) -> str:
        return (
            f"SELECT * FROM {self.qualify(name)} ORDER BY {self.quote(order_by)} "
            f"OFFSET {int(offset)} ROWS FETCH NEXT {int(limit)} ROWS ONLY"
        )

    def count_rows(self, name: str) -> int:
        return int(self.execute(f"SELECT count_big(*) FROM {self.qualify(name)}").scalar() or 0)

    # -------------------------------------------------------------------------
    # Catalog operations
    # -------------------------------------------------------------------------

    def get_overview(self) -> Overview:
        tables, indexes, triggers, views = self.execute(OBJECT_COUNTS, {"schema": self.schema}).rows[0]
        names = self.list_tables()

        return Overview(
            file_name=self.scalar("SELECT DB_NAME()"),
            db_size=format_size(self.scalar(DATABASE_SIZE) or 0),
            sqlite_version=self.scalar(VERSION),
            tables=tables,
            indexes=indexes,
            triggers=triggers,
            views=views,
            row_counts=ranked((name, self.count_rows(name)) for name in names),
            column_counts=ranked(fill_counts(names, self.execute(COLUMN_COUNTS, [self.schema]).rows)),
            index_counts=ranked(fill_counts(names, self.execute(INDEX_COUNTS, [self.schema]).rows)),
        )

    def get_table(self, name: str) -> TableDetail:
        self.ensure_table(name)
        params = [self.schema, name]

        return TableDetail(
            name=name,
            sql=None,
            row_count=self.count_rows(name),
            column_count=len(self.table_columns(name)),
            index_count=self.scalar(TABLE_INDEX_COUNT, params) or 0,
            table_size=format_size(self.scalar(TABLE_SIZE, params) or 0),
        )

    def get_tables_with_columns(self) -> AutocompleteCatalog:
        return AutocompleteCatalog(tables=group_columns(self.execute(ALL_COLUMNS, [self.schema]).rows))

    def get_erd(self) -> Erd:
        columns = [
            (table, column, data_type, is_yes(nullable))
            for table, column, data_type, nullable in self.execute(ALL_COLUMNS, [self.schema]).rows
        ]
        primary_keys = {tuple(row) for row in self.execute(PRIMARY_KEYS, [self.schema]).rows}
        foreign_keys = self.execute(FOREIGN_KEYS, [self.schema, self.schema]).rows
        return assemble_erd(columns, primary_keys, foreign_keys)
