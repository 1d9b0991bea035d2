"""
SQLite Adapter for SQL Studio

Single-file embedded databases through the standard library driver.

The sqlite3 connection is not safe for concurrent use, so this adapter is
SERIALIZED: the connection is opened on the adapter's single-owner worker
thread and every statement runs there. Timed-out queries are stopped with
Connection.interrupt(), the one call sqlite3 allows from another thread.

Requirements:
    None - sqlite3 is included in Python standard library
"""

import logging
import os
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from sqlstudio.adapters import sqlite_catalog as catalog
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
from sqlstudio.models import AutocompleteCatalog, Erd, Overview, TableDetail

logger = logging.getLogger(__name__)


class SQLiteAdapter(BlockingAdapter):
    """
    Adapter for SQLite database files.

    Config options:
        database: Path to an existing SQLite file (required)
        read_only: Open with mode=ro (default: False)
        timeout: Busy timeout in seconds (default: 30)

    Example:
        adapter = SQLiteAdapter({"database": "/path/to/data.db"})
        await adapter.connect()
        tables = await adapter.tables()
    """

    ENGINE = "sqlite"
    SERIALIZED = True
    DRIVER_ERRORS = (sqlite3.Error,)

    def __init__(self, config: Dict[str, Any], query_timeout: float = DEFAULT_QUERY_TIMEOUT):
        super().__init__(config, query_timeout)

        if not config.get("database"):
            raise ConnectionError(
                "Missing required config: database",
                engine=self.ENGINE
            )

        self.database = str(config["database"])
        self.read_only = config.get("read_only", False)
        self.timeout = config.get("timeout", 30.0)

        self._connection: Optional[sqlite3.Connection] = None
        self._has_dbstat = False

    def describe(self) -> str:
        return self.database

    def _get_uri(self) -> str:
        """Build the connection URI. mode=rw never creates a missing file."""
        mode = "ro" if self.read_only else "rw"
        return f"{Path(self.database).absolute().as_uri()}?mode={mode}"

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open(self) -> None:
        if not os.path.isfile(self.database):
            raise ConnectionError(
                f"Database file not found: {self.database}",
                engine=self.ENGINE
            )

        try:
            self._connection = sqlite3.connect(
                self._get_uri(),
                uri=True,
                timeout=self.timeout,
                isolation_level=None,
            )
            # Fails with "file is not a database" for non-SQLite files
            self._connection.execute("PRAGMA schema_version").fetchone()
        except sqlite3.Error as e:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
            raise ConnectionError(
                f"Failed to open SQLite database {self.database}: {e}",
                engine=self.ENGINE,
                original_error=e
            ) from e

        self._has_dbstat = self._probe_dbstat()
        logger.info(f"SQLite {sqlite3.sqlite_version} opened: {self.database} (dbstat: {self._has_dbstat})")

    def _probe_dbstat(self) -> bool:
        """dbstat is a compile-time option; probe for it once."""
        try:
            self._connection.execute(catalog.DBSTAT_PROBE).fetchall()
            return True
        except sqlite3.OperationalError as e:
            logger.debug(f"dbstat unavailable, table sizes will not be reported: {e}")
            return False

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def interrupt(self, handle: sqlite3.Connection) -> None:
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
        cursor = self._connection.cursor()
        try:
            with tracked(ticket, self._connection):
                return self._timed_fetch(cursor, sql, params)
        finally:
            cursor.close()

    def list_tables(self) -> List[str]:
        return self.execute(catalog.TABLE_NAMES).first_column()

    def table_columns(self, name: str) -> List[str]:
        return self.execute(catalog.TABLE_COLUMNS, [name]).first_column()

    # -------------------------------------------------------------------------
    # Catalog operations
    # -------------------------------------------------------------------------

    def get_overview(self) -> Overview:
        stat = os.stat(self.database)
        tables, indexes, triggers, views = self.execute(catalog.OBJECT_COUNTS).rows[0]
        birth_time = getattr(stat, "st_birthtime", None)

        return Overview(
            file_name=os.path.basename(self.database),
            db_size=format_size(stat.st_size),
            sqlite_version=sqlite3.sqlite_version,
            created=datetime.fromtimestamp(birth_time, tz=timezone.utc) if birth_time else None,
            modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            tables=tables,
            indexes=indexes,
            triggers=triggers,
            views=views,
            row_counts=ranked((name, self.count_rows(name)) for name in self.list_tables()),
            column_counts=ranked(catalog.pairs(self.execute(catalog.COLUMN_COUNTS).rows)),
            index_counts=ranked(catalog.pairs(self.execute(catalog.INDEX_COUNTS).rows)),
        )

    def get_table(self, name: str) -> TableDetail:
        self.ensure_table(name)
        return TableDetail(
            name=name,
            sql=self.scalar(catalog.TABLE_SQL, [name]),
            row_count=self.count_rows(name),
            column_count=self.scalar(catalog.TABLE_COLUMN_COUNT, [name]),
            index_count=self.scalar(catalog.TABLE_INDEX_COUNT, [name]),
            table_size=self._table_size(name),
        )

    def _table_size(self, name: str) -> str:
        if is_large_file(self.database):
            return LARGE_FILE_PLACEHOLDER
        if not self._has_dbstat:
            return "N/A"
        return format_size(self.scalar(catalog.DBSTAT_TABLE_SIZE, [name]) or 0)

    def get_tables_with_columns(self) -> AutocompleteCatalog:
        return AutocompleteCatalog(tables=catalog.autocomplete(self.execute(catalog.ALL_COLUMNS).rows))

    def get_erd(self) -> Erd:
        return catalog.build_erd(
            self.execute(catalog.ALL_COLUMNS).rows,
            self.execute(catalog.ALL_FOREIGN_KEYS).rows,
        )
