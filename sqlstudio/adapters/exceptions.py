"""
Adapter error taxonomy.

Every failure an adapter reports is an AdapterError subclass carrying the
engine name and, when a driver raised it, the original exception.
"""

from typing import Optional


class AdapterError(Exception):
    """Base exception for adapter errors."""

    def __init__(self, message: str, engine: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.engine = engine
        self.original_error = original_error


class ConnectionError(AdapterError):
    """Backend unreachable or not a valid instance of the expected engine."""
    pass


class CatalogQueryError(AdapterError):
    """An introspection query against the engine's catalog failed."""
    pass


class UserQueryError(AdapterError):
    """Caller-supplied SQL is malformed or failed during execution."""
    pass


class QueryTimeoutError(AdapterError):
    """Free-form query exceeded its time bound."""

    def __init__(
        self,
        message: str,
        engine: str,
        timeout_seconds: float,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message, engine, original_error)
        self.timeout_seconds = timeout_seconds


class TableNotFoundError(AdapterError):
    """A referenced table does not exist."""

    def __init__(self, table: str, engine: str):
        super().__init__(f"Table '{table}' not found", engine)
        self.table = table
