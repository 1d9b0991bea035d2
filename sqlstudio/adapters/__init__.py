"""
Database Adapters for SQL Studio

Every adapter implements the same read-only capability contract: overview,
tables, table, table_data, tables_with_columns, query and erd.

Supported Engines:
- SQLite (built-in, zero dependencies)
- libSQL / Turso
- PostgreSQL
- MySQL / MariaDB
- DuckDB
- Parquet and CSV files (through DuckDB)
- ClickHouse
- SQL Server / Azure SQL
"""

from sqlstudio.adapters.base import (
    AdapterError,
    AdapterResult,
    BaseAdapter,
    BlockingAdapter,
    CatalogQueryError,
    ConnectionError,
    QueryTimeoutError,
    TableNotFoundError,
    UserQueryError,
)
from sqlstudio.adapters.factory import (
    Dispatcher,
    create_adapter,
    is_engine_supported,
    list_adapters,
    register_adapter,
    resolve_engine,
)

__all__ = [
    "AdapterError",
    "AdapterResult",
    "BaseAdapter",
    "BlockingAdapter",
    "CatalogQueryError",
    "ConnectionError",
    "Dispatcher",
    "QueryTimeoutError",
    "TableNotFoundError",
    "UserQueryError",
    "create_adapter",
    "is_engine_supported",
    "list_adapters",
    "register_adapter",
    "resolve_engine",
]
