"""
libSQL Adapter for SQL Studio

Remote SQLite databases served over the libSQL protocol (sqld, Turso).

The libsql-client driver is natively asynchronous and its client multiplexes
concurrent statements, so this adapter implements the async contract
directly: no worker thread, requests run in parallel. The catalog SQL is the
same as the embedded SQLite adapter's (see sqlite_catalog.py).

Requirements:
    pip install libsql-client
"""

import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Type
from urllib.parse import urlsplit, urlunsplit

try:
    import aiohttp
    import libsql_client
    LIBSQL_AVAILABLE = True
except ImportError:
    LIBSQL_AVAILABLE = False
    aiohttp = None
    libsql_client = None

from sqlstudio.adapters import sqlite_catalog as catalog
from sqlstudio.adapters.base import (
    DEFAULT_QUERY_TIMEOUT,
    AdapterError,
    AdapterResult,
    BaseAdapter,
    CatalogQueryError,
    ConnectionError,
    TableNotFoundError,
    UserQueryError,
)
from sqlstudio.adapters.formatting import format_size, listed, ranked
from sqlstudio.adapters.governor import QueryTicket
from sqlstudio.adapters.pagination import page_window, sort_key
from sqlstudio.adapters.values import canonical_rows
from sqlstudio.models import (
    AutocompleteCatalog,
    Erd,
    Overview,
    QueryResult,
    TableData,
    TableDetail,
    Tables,
)

logger = logging.getLogger(__name__)


class LibSQLAdapter(BaseAdapter):
    """
    Adapter for remote libSQL databases.

    Config options:
        url: Server URL, e.g. libsql://db-org.turso.io (required)
        auth_token: Authentication token (default: none)

    Example:
        adapter = LibSQLAdapter({"url": "libsql://db.turso.io", "auth_token": "..."})
        await adapter.connect()
        result = await adapter.query("SELECT count(*) FROM users")
    """

    ENGINE = "libsql"

    def __init__(self, config: Dict[str, Any], query_timeout: float = DEFAULT_QUERY_TIMEOUT):
        super().__init__(config, query_timeout)

        if not LIBSQL_AVAILABLE:
            raise ConnectionError(
                "libsql-client not installed. Run: pip install libsql-client",
                engine=self.ENGINE
            )

        if not config.get("url"):
            raise ConnectionError(
                "Missing required config: url",
                engine=self.ENGINE
            )

        self.url = config["url"]
        self.auth_token = config.get("auth_token") or None
        self._client = None
        self._has_dbstat = False

    def describe(self) -> str:
        parts = urlsplit(self.url)
        host = parts.hostname or ""
        if parts.port:
            host = f"{host}:{parts.port}"
        return urlunsplit((parts.scheme, host, parts.path, "", ""))

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        try:
            self._client = libsql_client.create_client(self.url, auth_token=self.auth_token)
            await self._client.execute("SELECT 1")
        except Exception as e:
            await self._close_client()
            raise ConnectionError(
                f"Failed to connect to libSQL at {self.describe()}: {e}",
                engine=self.ENGINE,
                original_error=e
            ) from e

        self._has_dbstat = await self._probe_dbstat()
        self._connected = True
        logger.info(f"libSQL connected: {self.describe()}")

    async def _probe_dbstat(self) -> bool:
        try:
            await self._client.execute(catalog.DBSTAT_PROBE)
            return True
        except libsql_client.LibsqlError as e:
            logger.debug(f"dbstat unavailable on {self.describe()}: {e}")
            return False

    async def disconnect(self) -> None:
        try:
            await self._close_client()
        finally:
            self._connected = False

    async def _close_client(self) -> None:
        if self._client is not None:
            client, self._client = self._client, None
            await client.close()

    # -------------------------------------------------------------------------
    # Statement helpers
    # -------------------------------------------------------------------------

    async def _execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> AdapterResult:
        start_time = time.perf_counter()
        if params:
            result_set = await self._client.execute(sql, list(params))
        else:
            result_set = await self._client.execute(sql)
        return AdapterResult(
            rows=[tuple(row) for row in result_set.rows],
            columns=list(result_set.columns),
            execution_time_ms=(time.perf_counter() - start_time) * 1000,
            engine=self.ENGINE,
            sql=sql
        )

    async def _scalar(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        return (await self._execute(sql, params)).scalar()

    async def _call(
        self,
        error_class: Type[AdapterError],
        fn: Callable[..., Awaitable[Any]],
        *args: Any
    ) -> Any:
        self._require_connected()
        self._update_last_used()
        try:
            return await fn(*args)
        except AdapterError:
            raise
        except libsql_client.LibsqlError as e:
            logger.error(f"libsql {fn.__name__} failed: {e}")
            raise error_class(
                f"libsql {fn.__name__} failed: {e}",
                engine=self.ENGINE,
                original_error=e
            ) from e
        except (aiohttp.ClientError, OSError) as e:
            # Transport failures: the server went away mid-request
            logger.error(f"libsql {fn.__name__} lost the connection: {e}")
            raise ConnectionError(
                f"Lost connection to libSQL at {self.describe()}: {e}",
                engine=self.ENGINE,
                original_error=e
            ) from e

    async def _list_tables(self) -> List[str]:
        return (await self._execute(catalog.TABLE_NAMES)).first_column()

    async def _count_rows(self, name: str) -> int:
        return int(await self._scalar(f"SELECT count(*) FROM {self.quote(name)}") or 0)

    async def _ensure_table(self, name: str) -> None:
        if name not in await self._list_tables():
            raise TableNotFoundError(name, engine=self.ENGINE)

    # -------------------------------------------------------------------------
    # Capability contract
    # -------------------------------------------------------------------------

    async def overview(self) -> Overview:
        return await self._call(CatalogQueryError, self._overview)

    async def _overview(self) -> Overview:
        tables, indexes, triggers, views = (await self._execute(catalog.OBJECT_COUNTS)).rows[0]
        row_counts = [(name, await self._count_rows(name)) for name in await self._list_tables()]

        return Overview(
            file_name=self.describe(),
            db_size=format_size(await self._scalar(catalog.DATABASE_SIZE) or 0),
            sqlite_version=await self._scalar(catalog.VERSION),
            tables=tables,
            indexes=indexes,
            triggers=triggers,
            views=views,
            row_counts=ranked(row_counts),
            column_counts=ranked(catalog.pairs((await self._execute(catalog.COLUMN_COUNTS)).rows)),
            index_counts=ranked(catalog.pairs((await self._execute(catalog.INDEX_COUNTS)).rows)),
        )

    async def tables(self) -> Tables:
        return await self._call(CatalogQueryError, self._tables)

    async def _tables(self) -> Tables:
        return Tables(tables=listed([(name, await self._count_rows(name)) for name in await self._list_tables()]))

    async def table(self, name: str) -> TableDetail:
        return await self._call(CatalogQueryError, self._table, name)

    async def _table(self, name: str) -> TableDetail:
        await self._ensure_table(name)
        if self._has_dbstat:
            table_size = format_size(await self._scalar(catalog.DBSTAT_TABLE_SIZE, [name]) or 0)
        else:
            table_size = "N/A"

        return TableDetail(
            name=name,
            sql=await self._scalar(catalog.TABLE_SQL, [name]),
            row_count=await self._count_rows(name),
            column_count=await self._scalar(catalog.TABLE_COLUMN_COUNT, [name]),
            index_count=await self._scalar(catalog.TABLE_INDEX_COUNT, [name]),
            table_size=table_size,
        )

    async def table_data(self, name: str, page: int = 1) -> TableData:
        page_window(page)
        return await self._call(CatalogQueryError, self._table_data, name, page)

    async def _table_data(self, name: str, page: int) -> TableData:
        await self._ensure_table(name)
        key = sort_key((await self._execute(catalog.TABLE_COLUMNS, [name])).first_column())
        if key is None:
            return TableData(columns=[], rows=[])

        limit, offset = page_window(page)
        result = await self._execute(
            f"SELECT * FROM {self.quote(name)} ORDER BY {self.quote(key)} LIMIT {limit} OFFSET {offset}"
        )
        return TableData(columns=result.columns, rows=canonical_rows(result.rows))

    async def tables_with_columns(self) -> AutocompleteCatalog:
        return await self._call(CatalogQueryError, self._tables_with_columns)

    async def _tables_with_columns(self) -> AutocompleteCatalog:
        return AutocompleteCatalog(tables=catalog.autocomplete((await self._execute(catalog.ALL_COLUMNS)).rows))

    async def erd(self) -> Erd:
        return await self._call(CatalogQueryError, self._erd)

    async def _erd(self) -> Erd:
        columns = await self._execute(catalog.ALL_COLUMNS)
        foreign_keys = await self._execute(catalog.ALL_FOREIGN_KEYS)
        return catalog.build_erd(columns.rows, foreign_keys.rows)

    async def execute_query(self, sql: str, ticket: Optional[QueryTicket] = None) -> QueryResult:
        # Statements run on the server; a timed-out one is abandoned, not interrupted
        return await self._call(UserQueryError, self._run_query, sql)

    async def _run_query(self, sql: str) -> QueryResult:
        result = await self._execute(sql)
        return QueryResult(columns=result.columns, rows=canonical_rows(result.rows))
