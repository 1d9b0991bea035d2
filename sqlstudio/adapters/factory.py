"""
Adapter Factory for SQL Studio

Closed registry of the built-in adapters and the Dispatcher that owns the
single active adapter for the lifetime of the process.

Usage:
    from sqlstudio.adapters import Dispatcher, create_adapter

    dispatcher = Dispatcher(create_adapter("sqlite", {"database": "app.db"}))
    await dispatcher.start()
    tables = await dispatcher.tables()
    await dispatcher.close()
"""

import logging
from typing import Any, Dict, List, Optional, Type

from sqlstudio.adapters.base import DEFAULT_QUERY_TIMEOUT, BaseAdapter, ConnectionError
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


# =============================================================================
# ADAPTER REGISTRY
# =============================================================================

# Map of engine name -> adapter class
_ADAPTER_REGISTRY: Dict[str, Type[BaseAdapter]] = {}

# Alternate spellings accepted for an engine
_ALIASES: Dict[str, str] = {}


def register_adapter(engine: str, adapter_class: Type[BaseAdapter], aliases: tuple = ()) -> None:
    """
    Register an adapter class for an engine.

    Args:
        engine: Engine identifier (e.g., "sqlite", "postgres")
        adapter_class: Adapter class to use for this engine
        aliases: Other names resolving to the same engine
    """
    _ADAPTER_REGISTRY[engine.lower()] = adapter_class
    for alias in aliases:
        _ALIASES[alias.lower()] = engine.lower()
    logger.debug(f"Registered adapter for engine: {engine}")


def list_adapters() -> List[str]:
    """Get list of registered adapter engines."""
    return list(_ADAPTER_REGISTRY.keys())


def resolve_engine(engine: str) -> str:
    """Canonical engine key for an engine name or alias."""
    key = engine.lower()
    return _ALIASES.get(key, key)


def is_engine_supported(engine: str) -> bool:
    """Check if an engine has a registered adapter."""
    return resolve_engine(engine) in _ADAPTER_REGISTRY


def create_adapter(
    engine: str,
    config: Dict[str, Any],
    query_timeout: float = DEFAULT_QUERY_TIMEOUT
) -> BaseAdapter:
    """
    Build an (unconnected) adapter for the specified engine.

    Raises:
        ConnectionError: If the engine is not supported or its driver is
            not installed

    Example:
        adapter = create_adapter("postgres", {
            "dsn": "postgresql://postgres@localhost/sample",
            "schema": "public"
        }, query_timeout=5)
    """
    key = resolve_engine(engine)
    if key not in _ADAPTER_REGISTRY:
        available = ", ".join(list_adapters())
        raise ConnectionError(
            f"Unsupported engine: {engine}. Available: {available}",
            engine=engine
        )
    return _ADAPTER_REGISTRY[key](config, query_timeout=query_timeout)


# =============================================================================
# DISPATCHER
# =============================================================================

class Dispatcher:
    """
    Routes every capability operation to the one adapter chosen at startup.

    The adapter is never swapped. Results and errors pass through unchanged;
    translating errors for the caller is the HTTP layer's job.
    """

    def __init__(self, adapter: BaseAdapter):
        self._adapter = adapter

    @property
    def adapter(self) -> BaseAdapter:
        return self._adapter

    @property
    def engine(self) -> str:
        return self._adapter.ENGINE

    async def start(self) -> None:
        """Connect the adapter. Raises ConnectionError on failure."""
        await self._adapter.connect()

    async def close(self) -> None:
        await self._adapter.disconnect()

    async def overview(self) -> Overview:
        return await self._adapter.overview()

    async def tables(self) -> Tables:
        return await self._adapter.tables()

    async def table(self, name: str) -> TableDetail:
        return await self._adapter.table(name)

    async def table_data(self, name: str, page: int = 1) -> TableData:
        return await self._adapter.table_data(name, page)

    async def tables_with_columns(self) -> AutocompleteCatalog:
        return await self._adapter.tables_with_columns()

    async def query(self, sql: str) -> QueryResult:
        return await self._adapter.query(sql)

    async def erd(self) -> Erd:
        return await self._adapter.erd()


# =============================================================================
# AUTO-REGISTER BUILT-IN ADAPTERS
# =============================================================================

def _register_builtin_adapters():
    """Register all built-in adapters."""

    # SQLite (built-in, no dependencies)
    from sqlstudio.adapters.sqlite_adapter import SQLiteAdapter
    register_adapter("sqlite", SQLiteAdapter, aliases=("sqlite3",))

    # The remaining modules import cleanly without their driver; a missing
    # driver surfaces as ConnectionError when the adapter is built
    from sqlstudio.adapters.libsql_adapter import LibSQLAdapter
    register_adapter("libsql", LibSQLAdapter)

    from sqlstudio.adapters.postgres_adapter import PostgresAdapter
    register_adapter("postgres", PostgresAdapter, aliases=("postgresql",))

    from sqlstudio.adapters.mysql_adapter import MySQLAdapter
    register_adapter("mysql", MySQLAdapter, aliases=("mariadb",))

    from sqlstudio.adapters.duckdb_adapter import DuckDBAdapter
    register_adapter("duckdb", DuckDBAdapter)

    from sqlstudio.adapters.files_adapter import CsvAdapter, ParquetAdapter
    register_adapter("parquet", ParquetAdapter)
    register_adapter("csv", CsvAdapter)

    from sqlstudio.adapters.clickhouse_adapter import ClickHouseAdapter
    register_adapter("clickhouse", ClickHouseAdapter, aliases=("ch",))

    from sqlstudio.adapters.sqlserver_adapter import SQLServerAdapter
    register_adapter("sqlserver", SQLServerAdapter, aliases=("mssql",))


# Register on module load
_register_builtin_adapters()
