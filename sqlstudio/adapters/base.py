"""
Base Adapter Interface for SQL Studio

All database adapters implement the same capability contract so callers
never learn which engine sits behind the API:

    overview, tables, table, table_data, tables_with_columns, query, erd

DESIGN PRINCIPLES:
-----------------
1. The public contract is async; blocking drivers run on a worker
   (see worker.py), natively async drivers implement it directly
2. Catalog lookups bind values as parameters; identifiers are quoted
   per dialect with quote()
3. Result cells leave the adapter as canonical values (see values.py)
4. Driver errors are wrapped in AdapterError subclasses, never retried
5. Free-form queries are bounded by the TimeoutGovernor, nothing else
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Type

from sqlstudio.adapters.exceptions import (
    AdapterError,
    CatalogQueryError,
    ConnectionError,
    QueryTimeoutError,
    TableNotFoundError,
    UserQueryError,
)
from sqlstudio.adapters.formatting import by_name_length, listed
from sqlstudio.adapters.governor import DEFAULT_QUERY_TIMEOUT, QueryTicket, TimeoutGovernor
from sqlstudio.adapters.pagination import page_window, sort_key
from sqlstudio.adapters.values import canonical_rows
from sqlstudio.adapters.worker import PooledWorker, SerializedWorker
from sqlstudio.models import (
    AutocompleteCatalog,
    Erd,
    Overview,
    QueryResult,
    TableColumns,
    TableData,
    TableDetail,
    Tables,
)

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_QUERY_TIMEOUT",
    "AdapterError",
    "AdapterResult",
    "BaseAdapter",
    "BlockingAdapter",
    "CatalogQueryError",
    "ConnectionError",
    "QueryTimeoutError",
    "TableNotFoundError",
    "UserQueryError",
]


@dataclass
class AdapterResult:
    """
    Raw result of one statement, before value canonicalization.

    Attributes:
        rows: Result rows as positional tuples of native driver values
        columns: Column names in result order (may contain duplicates)
        row_count: Number of rows returned
        execution_time_ms: Statement execution time in milliseconds
        engine: Database engine name
        sql: Executed SQL
    """
    rows: List[Sequence[Any]]
    columns: List[str]
    row_count: int = 0
    execution_time_ms: float = 0.0
    engine: str = ""
    sql: str = ""

    def __post_init__(self):
        self.row_count = len(self.rows)

    def scalar(self) -> Any:
        """First cell of the first row, or None for an empty result."""
        if not self.rows or not self.rows[0]:
            return None
        return self.rows[0][0]

    def first_column(self) -> List[Any]:
        return [row[0] for row in self.rows]


class BaseAdapter(ABC):
    """
    Abstract base class for database adapters.

    Each adapter must implement:
    - connect() / disconnect(): open and release the backend handle
    - overview(), tables(), table(), table_data(), tables_with_columns(),
      erd(): catalog operations
    - execute_query(): run caller SQL (query() adds the timeout bound)

    Usage:
        adapter = SQLiteAdapter({"database": "app.db"}, query_timeout=5)
        await adapter.connect()
        overview = await adapter.overview()
        result = await adapter.query("SELECT count(*) FROM users")
        await adapter.disconnect()
    """

    # Engine identifier (e.g., "sqlite", "postgres", "duckdb")
    ENGINE: str = "base"

    # Identifier quoting for this dialect
    QUOTE_OPEN: str = '"'
    QUOTE_CLOSE: str = '"'

    def __init__(self, config: Dict[str, Any], query_timeout: float = DEFAULT_QUERY_TIMEOUT):
        """
        Initialize adapter with connection configuration.

        Args:
            config: Engine-specific configuration dict
            query_timeout: Bound for free-form queries, in seconds
        """
        self.config = config
        self.governor = TimeoutGovernor(query_timeout, engine=self.ENGINE)
        self._connected = False
        self._last_used: Optional[datetime] = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @abstractmethod
    async def connect(self) -> None:
        """
        Open the backend handle.

        Raises:
            ConnectionError: If the backend is unreachable or invalid
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Release the backend handle. Safe to call when not connected."""
        pass

    # -------------------------------------------------------------------------
    # Capability contract
    # -------------------------------------------------------------------------

    @abstractmethod
    async def overview(self) -> Overview:
        pass

    @abstractmethod
    async def tables(self) -> Tables:
        pass

    @abstractmethod
    async def table(self, name: str) -> TableDetail:
        pass

    @abstractmethod
    async def table_data(self, name: str, page: int = 1) -> TableData:
        pass

    @abstractmethod
    async def tables_with_columns(self) -> AutocompleteCatalog:
        pass

    @abstractmethod
    async def erd(self) -> Erd:
        pass

    @abstractmethod
    async def execute_query(self, sql: str, ticket: Optional[QueryTicket] = None) -> QueryResult:
        """
        Run caller-supplied SQL verbatim, without a time bound.

        Blocking adapters mark the ticket running on the backend handle the
        statement executes on, so cancel() can interrupt exactly that statement.
        """
        pass

    async def query(self, sql: str) -> QueryResult:
        """
        Run caller-supplied SQL, bounded by the timeout governor.

        Raises:
            UserQueryError: If the SQL fails
            QueryTimeoutError: If it runs past the configured bound
        """
        self._require_connected()
        self._update_last_used()
        ticket = QueryTicket(engine=self.ENGINE)
        return await self.governor.run(
            self.execute_query(sql, ticket),
            # Interrupting may block on the network; keep it off the event loop
            on_timeout=lambda: asyncio.to_thread(self.cancel, ticket)
        )

    def cancel(self, ticket: QueryTicket) -> None:
        """Cancel a timed-out query, interrupting it if it is executing."""
        if ticket.cancel(self.interrupt):
            logger.info(f"{self.ENGINE} query interrupted after timeout")

    def interrupt(self, handle: Any) -> None:
        """Abort the statement running on handle, if the engine supports it."""
        pass

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def quote(self, identifier: str) -> str:
        """Quote an identifier for this dialect, escaping the closing quote."""
        escaped = identifier.replace(self.QUOTE_CLOSE, self.QUOTE_CLOSE * 2)
        return f"{self.QUOTE_OPEN}{escaped}{self.QUOTE_CLOSE}"

    def qualify(self, name: str) -> str:
        """Quoted, possibly schema-qualified table reference."""
        return self.quote(name)

    def describe(self) -> str:
        """Target description for logs, without credentials."""
        return self.ENGINE

    def is_connected(self) -> bool:
        return self._connected

    def get_engine_info(self) -> Dict[str, Any]:
        """Get information about this adapter/engine."""
        return {
            "engine": self.ENGINE,
            "target": self.describe(),
            "connected": self._connected,
            "query_timeout": self.governor.seconds,
            "last_used": self._last_used.isoformat() if self._last_used else None
        }

    def _require_connected(self) -> None:
        if not self._connected:
            raise ConnectionError(f"Not connected to {self.ENGINE}", engine=self.ENGINE)

    def _update_last_used(self):
        self._last_used = datetime.now(timezone.utc)


class BlockingAdapter(BaseAdapter):
    """
    Base for adapters built on a blocking DB-API style driver.

    Subclasses implement synchronous primitives that run on the adapter's
    worker thread(s); this class turns them into the async contract and wraps
    driver errors. SERIALIZED adapters get a single-owner worker, the rest a
    pooled worker sized by the `pool_size` config key.

    Subclasses must implement:
    - open() / close()
    - execute(sql, params) -> AdapterResult
    - list_tables(), table_columns(name)
    - get_overview(), get_table(name), get_erd()
    """

    SERIALIZED: bool = False

    # Exceptions raised by the driver; these become adapter errors
    DRIVER_ERRORS: Tuple[Type[BaseException], ...] = ()

    def __init__(self, config: Dict[str, Any], query_timeout: float = DEFAULT_QUERY_TIMEOUT):
        super().__init__(config, query_timeout)
        if self.SERIALIZED:
            self._worker = SerializedWorker(f"{self.ENGINE}-worker")
        else:
            self._worker = PooledWorker(
                f"{self.ENGINE}-worker",
                max_workers=max(1, int(config.get("pool_size", 5)))
            )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        try:
            await self._worker.run(self.open)
        except ConnectionError:
            raise
        except Exception as e:
            raise ConnectionError(
                f"Failed to connect to {self.ENGINE}: {e}",
                engine=self.ENGINE,
                original_error=e
            ) from e
        self._connected = True
        logger.info(f"{self.ENGINE} connected: {self.describe()}")

    async def disconnect(self) -> None:
        try:
            if self._connected:
                await self._worker.run(self.close)
        except self.DRIVER_ERRORS as e:
            logger.warning(f"Error closing {self.ENGINE} connection: {e}")
        finally:
            self._connected = False
            self._worker.shutdown(wait=False)

    # -------------------------------------------------------------------------
    # Capability contract
    # -------------------------------------------------------------------------

    async def overview(self) -> Overview:
        return await self._catalog(self.get_overview)

    async def tables(self) -> Tables:
        return await self._catalog(self.get_tables)

    async def table(self, name: str) -> TableDetail:
        return await self._catalog(self.get_table, name)

    async def table_data(self, name: str, page: int = 1) -> TableData:
        page_window(page)
        return await self._catalog(self.get_table_data, name, page)

    async def tables_with_columns(self) -> AutocompleteCatalog:
        return await self._catalog(self.get_tables_with_columns)

    async def erd(self) -> Erd:
        return await self._catalog(self.get_erd)

    async def execute_query(self, sql: str, ticket: Optional[QueryTicket] = None) -> QueryResult:
        return await self._call(UserQueryError, self.run_query, sql, ticket)

    def cancel(self, ticket: QueryTicket) -> None:
        try:
            super().cancel(ticket)
        except self.DRIVER_ERRORS as e:
            logger.warning(f"Could not interrupt {self.ENGINE} query: {e}")

    async def _catalog(self, fn: Callable[..., Any], *args: Any) -> Any:
        return await self._call(CatalogQueryError, fn, *args)

    async def _call(self, error_class: Type[AdapterError], fn: Callable[..., Any], *args: Any) -> Any:
        """Run a primitive on the worker, wrapping driver errors in error_class."""
        self._require_connected()
        self._update_last_used()
        try:
            return await self._worker.run(fn, *args)
        except AdapterError:
            raise
        except self.DRIVER_ERRORS as e:
            logger.error(f"{self.ENGINE} {fn.__name__} failed: {e}")
            raise error_class(
                f"{self.ENGINE} {fn.__name__} failed: {e}",
                engine=self.ENGINE,
                original_error=e
            ) from e

    # -------------------------------------------------------------------------
    # Primitives (run on the worker thread)
    # -------------------------------------------------------------------------

    @abstractmethod
    def open(self) -> None:
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    @abstractmethod
    def execute(
        self,
        sql: str,
        params: Optional[Sequence[Any]] = None,
        ticket: Optional[QueryTicket] = None
    ) -> AdapterResult:
        """Execute one statement and fetch all rows, tracked by ticket when given."""
        pass

    @abstractmethod
    def list_tables(self) -> List[str]:
        """Names of the user tables the adapter exposes."""
        pass

    @abstractmethod
    def table_columns(self, name: str) -> List[str]:
        """Column names of a table, in structural introspection order."""
        pass

    @abstractmethod
    def get_overview(self) -> Overview:
        pass

    @abstractmethod
    def get_table(self, name: str) -> TableDetail:
        pass

    @abstractmethod
    def get_erd(self) -> Erd:
        pass

    def get_tables(self) -> Tables:
        return Tables(tables=listed((name, self.count_rows(name)) for name in self.list_tables()))

    def get_table_data(self, name: str, page: int) -> TableData:
        self.ensure_table(name)
        key = sort_key(self.table_columns(name))
        if key is None:
            return TableData(columns=[], rows=[])
        limit, offset = page_window(page)
        result = self.execute(self.page_sql(name, key, limit, offset))
        return TableData(columns=result.columns, rows=canonical_rows(result.rows))

    def get_tables_with_columns(self) -> AutocompleteCatalog:
        return AutocompleteCatalog(tables=[
            TableColumns(table_name=name, columns=self.table_columns(name))
            for name in by_name_length(self.list_tables())
        ])

    def run_query(self, sql: str, ticket: Optional[QueryTicket] = None) -> QueryResult:
        result = self.execute(sql, ticket=ticket)
        logger.debug(f"{self.ENGINE} query returned {result.row_count} rows in {result.execution_time_ms:.1f}ms")
        return QueryResult(columns=result.columns, rows=canonical_rows(result.rows))

    # -------------------------------------------------------------------------
    # SQL helpers
    # -------------------------------------------------------------------------

    def page_sql(self, name: str, order_by: str, limit: int, offset: int) -> str:
        return (
            f"SELECT * FROM {self.qualify(name)} "
            f"ORDER BY {self.quote(order_by)} LIMIT {int(limit)} OFFSET {int(offset)}"
        )

    def count_rows(self, name: str) -> int:
        return int(self.execute(f"SELECT count(*) FROM {self.qualify(name)}").scalar() or 0)

    def scalar(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        return self.execute(sql, params).scalar()

    def ensure_table(self, name: str) -> None:
        if name not in self.list_tables():
            raise TableNotFoundError(name, engine=self.ENGINE)

    def _timed_fetch(self, cursor, sql: str, params: Optional[Sequence[Any]]) -> AdapterResult:
        """Execute on a DB-API cursor and collect an AdapterResult."""
        start_time = time.perf_counter()
        if params:
            cursor.execute(sql, params)
        else:
            cursor.execute(sql)
        if cursor.description is None:
            rows, columns = [], []
        else:
            columns = [desc[0] for desc in cursor.description]
            rows = [tuple(row) for row in cursor.fetchall()]
        return AdapterResult(
            rows=rows,
            columns=columns,
            execution_time_ms=(time.perf_counter() - start_time) * 1000,
            engine=self.ENGINE,
            sql=sql
        )
