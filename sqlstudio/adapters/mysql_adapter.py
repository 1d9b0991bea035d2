"""
MySQL Adapter for SQL Studio

Supports MySQL 5.7+ and MariaDB through mysql-connector-python. The
connected database (DATABASE()) is the introspected schema.

Features:
- Connection pooling (MySQLConnectionPool); requests run in parallel
- Autocommit, no implicit transactions
- DDL via SHOW CREATE TABLE, foreign keys via key_column_usage
- Timed-out queries are stopped with KILL QUERY from a separate connection

Requirements:
    pip install mysql-connector-python
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence

try:
    import mysql.connector
    from mysql.connector import pooling
    MYSQL_AVAILABLE = True
except ImportError:
    MYSQL_AVAILABLE = False
    mysql = None
    pooling = None

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


# =============================================================================
# CATALOG QUERIES
# =============================================================================

TABLE_NAMES = """
SELECT table_name FROM information_schema.tables
WHERE table_schema = DATABASE() AND table_type = 'BASE TABLE'
ORDER BY table_name
"""

OBJECT_COUNTS = """
SELECT
    (SELECT count(*) FROM information_schema.tables
        WHERE table_schema = DATABASE() AND table_type = 'BASE TABLE'),
    (SELECT count(DISTINCT table_name, index_name) FROM information_schema.statistics
        WHERE table_schema = DATABASE()),
    (SELECT count(*) FROM information_schema.triggers WHERE trigger_schema = DATABASE()),
    (SELECT count(*) FROM information_schema.views WHERE table_schema = DATABASE())
"""

DATABASE_SIZE = """
SELECT SUM(data_length + index_length) FROM information_schema.tables
WHERE table_schema = DATABASE()
"""

COLUMN_COUNTS = """
SELECT table_name, count(*) FROM information_schema.columns
WHERE table_schema = DATABASE()
GROUP BY table_name
"""

INDEX_COUNTS = """
SELECT table_name, count(DISTINCT index_name) FROM information_schema.statistics
WHERE table_schema = DATABASE()
GROUP BY table_name
"""

TABLE_COLUMNS = """
SELECT column_name FROM information_schema.columns
WHERE table_schema = DATABASE() AND table_name = %s
ORDER BY ordinal_position
"""

TABLE_INDEX_COUNT = """
SELECT count(DISTINCT index_name) FROM information_schema.statistics
WHERE table_schema = DATABASE() AND table_name = %s
"""

TABLE_SIZE = """
SELECT data_length + index_length FROM information_schema.tables
WHERE table_schema = DATABASE() AND table_name = %s
"""

ALL_COLUMNS = """
SELECT c.table_name, c.column_name, c.column_type, c.is_nullable, c.column_key
FROM information_schema.columns c
JOIN information_schema.tables t
    ON c.table_schema = t.table_schema AND c.table_name = t.table_name
WHERE c.table_schema = DATABASE() AND t.table_type = 'BASE TABLE'
ORDER BY c.table_name, c.ordinal_position
"""

FOREIGN_KEYS = """
SELECT table_name, column_name, referenced_table_name, referenced_column_name
FROM information_schema.key_column_usage
WHERE table_schema = DATABASE()
    AND referenced_table_schema = DATABASE()
    AND referenced_table_name IS NOT NULL
ORDER BY table_name, ordinal_position
"""


def _text(value: Any) -> Any:
    """Older servers return information_schema strings as bytes."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    return value


class MySQLAdapter(BlockingAdapter):
    """
    Adapter for MySQL / MariaDB.

    Config options:
        host: Server host (required)
        port: Server port (default: 3306)
        database: Database name (required)
        user: Username (required)
        password: Password (default: "")
        charset: Connection charset (default: utf8mb4)
        connect_timeout: Connection timeout in seconds (default: 10)
        pool_size: Connection pool size and worker threads (default: 5)

    Example:
        adapter = MySQLAdapter({
            "host": "localhost",
            "database": "sample",
            "user": "root",
            "password": "secret"
        })
        await adapter.connect()
    """

    ENGINE = "mysql"
    QUOTE_OPEN = "`"
    QUOTE_CLOSE = "`"
    DRIVER_ERRORS = (mysql.connector.Error,) if MYSQL_AVAILABLE else ()

    def __init__(self, config: Dict[str, Any], query_timeout: float = DEFAULT_QUERY_TIMEOUT):
        super().__init__(config, query_timeout)

        if not MYSQL_AVAILABLE:
            raise ConnectionError(
                "mysql-connector-python not installed. Run: pip install mysql-connector-python",
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
        self.port = int(config.get("port") or 3306)
        self.database = config["database"]
        self.user = config["user"]
        self.password = config.get("password") or ""
        self.charset = config.get("charset", "utf8mb4")
        self.connect_timeout = config.get("connect_timeout", 10)
        self.pool_size = max(1, int(config.get("pool_size", 5)))
        self.pool_name = config.get("pool_name", "sqlstudio_pool")

        self._pool = None

    def describe(self) -> str:
        return f"{self.host}:{self.port}/{self.database}"

    def _build_connection_params(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "database": self.database,
            "user": self.user,
            "password": self.password,
            "charset": self.charset,
            "connect_timeout": self.connect_timeout,
            "autocommit": True,
        }

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open(self) -> None:
        self._pool = pooling.MySQLConnectionPool(
            pool_name=self.pool_name,
            pool_size=self.pool_size,
            **self._build_connection_params()
        )
        with self._cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchall()

    def close(self) -> None:
        if self._pool is not None:
            # Close idle pooled connections
            self._pool._remove_connections()
            self._pool = None

    def interrupt(self, handle: Any) -> None:
        # The busy connection cannot take another command
        killer = mysql.connector.connect(**self._build_connection_params())
        try:
            cursor = killer.cursor()
            cursor.execute(f"KILL QUERY {int(handle.connection_id)}")
            cursor.close()
        finally:
            killer.close()

    @contextmanager
    def _cursor(self, ticket: Optional[QueryTicket] = None) -> Iterator[Any]:
        conn = self._pool.get_connection()
        try:
            cursor = conn.cursor(buffered=True)
            try:
                with tracked(ticket, conn):
                    yield cursor
            finally:
                cursor.close()
        finally:
            conn.close()  # Returns to pool

    # -------------------------------------------------------------------------
    # Primitives
    # -------------------------------------------------------------------------

    def execute(
        self,
        sql: str,
        params: Optional[Sequence[Any]] = None,
        ticket: Optional[QueryTicket] = None
    ) -> AdapterResult:
        with self._cursor(ticket) as cursor:
            return self._timed_fetch(cursor, sql, params)

    def list_tables(self) -> List[str]:
        return [_text(name) for name in self.execute(TABLE_NAMES).first_column()]

    def table_columns(self, name: str) -> List[str]:
        return [_text(column) for column in self.execute(TABLE_COLUMNS, [name]).first_column()]

    def _pairs(self, sql: str) -> List[Sequence[Any]]:
        return [(_text(row[0]), row[1]) for row in self.execute(sql).rows]

    # -------------------------------------------------------------------------
    # Catalog operations
    # -------------------------------------------------------------------------

    def get_overview(self) -> Overview:
        tables, indexes, triggers, views = self.execute(OBJECT_COUNTS).rows[0]
        names = self.list_tables()

        return Overview(
            file_name=self.database,
            db_size=format_size(self.scalar(DATABASE_SIZE) or 0),
            sqlite_version=_text(self.scalar("SELECT VERSION()")),
            tables=tables,
            indexes=indexes,
            triggers=triggers,
            views=views,
            row_counts=ranked((name, self.count_rows(name)) for name in names),
            column_counts=ranked(fill_counts(names, self._pairs(COLUMN_COUNTS))),
            index_counts=ranked(fill_counts(names, self._pairs(INDEX_COUNTS))),
        )

    def get_table(self, name: str) -> TableDetail:
        self.ensure_table(name)
        create = self.execute(f"SHOW CREATE TABLE {self.quote(name)}").rows

        return TableDetail(
            name=name,
            sql=_text(create[0][1]) if create else None,
            row_count=self.count_rows(name),
            column_count=len(self.table_columns(name)),
            index_count=self.scalar(TABLE_INDEX_COUNT, [name]) or 0,
            table_size=format_size(self.scalar(TABLE_SIZE, [name]) or 0),
        )

    def get_tables_with_columns(self) -> AutocompleteCatalog:
        rows = [(_text(row[0]), _text(row[1])) for row in self.execute(ALL_COLUMNS).rows]
        return AutocompleteCatalog(tables=group_columns(rows))

    def get_erd(self) -> Erd:
        columns = []
        primary_keys = set()
        for table, column, column_type, nullable, column_key in self.execute(ALL_COLUMNS).rows:
            table, column = _text(table), _text(column)
            columns.append((table, column, _text(column_type), is_yes(nullable)))
            if _text(column_key) == "PRI":
                primary_keys.add((table, column))

        foreign_keys = [tuple(_text(value) for value in row) for row in self.execute(FOREIGN_KEYS).rows]
        return assemble_erd(columns, primary_keys, foreign_keys)
