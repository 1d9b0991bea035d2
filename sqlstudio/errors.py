"""
SQL Studio - Structured Error Handling

Adapter failures are translated into structured HTTP error responses here,
and only here. Adapters and the Dispatcher pass errors through unchanged.

ERROR DESIGN PRINCIPLES:
------------------------
1. Every error has a unique code for log searching
2. Messages are human-readable; catalog failures stay generic for the
   caller while the driver detail goes to the server log
3. Suggestions guide users to fix the issue
4. Request IDs enable cross-system tracing

ERROR RESPONSE FORMAT:
----------------------
{
    "error": {
        "code": "ERR_2001",
        "message": "Table 'orders' not found",
        "details": {"table": "orders"},
        "suggestion": "Check GET /api/tables for available tables",
        "request_id": "abc-123",
        "timestamp": "2024-01-01T00:00:00+00:00"
    }
}
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from sqlstudio.adapters.exceptions import (
    AdapterError,
    CatalogQueryError,
    ConnectionError,
    QueryTimeoutError,
    TableNotFoundError,
    UserQueryError,
)

logger = logging.getLogger(__name__)


# =============================================================================
# ERROR CODES
# =============================================================================

class ErrorCode(str, Enum):
    """Unique error codes for every error type."""

    # Catalog (2xxx)
    ERR_TABLE_NOT_FOUND = "ERR_2001"

    # Request validation (3xxx)
    ERR_REQUEST_INVALID = "ERR_3001"

    # Query Execution (4xxx)
    ERR_QUERY_TIMEOUT = "ERR_4001"
    ERR_QUERY_FAILED = "ERR_4002"
    ERR_CONNECTION_FAILED = "ERR_4003"
    ERR_ADAPTER_ERROR = "ERR_4005"
    ERR_CATALOG_QUERY_FAILED = "ERR_4006"

    # Internal (9xxx)
    ERR_INTERNAL = "ERR_9001"


# =============================================================================
# ERROR RESPONSE
# =============================================================================

@dataclass
class StudioError(Exception):
    """
    Structured error with all context needed for debugging.

    Attributes:
        code: Unique error code for searching logs
        message: Human-readable error message
        status_code: HTTP status code
        details: Additional context (dict)
        suggestion: How to fix the issue
        request_id: Request tracing ID
    """
    code: ErrorCode
    message: str
    status_code: int = 400
    details: Dict[str, Any] = field(default_factory=dict)
    suggestion: Optional[str] = None
    request_id: Optional[str] = None

    def __post_init__(self):
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to API response format."""
        error_dict = {
            "code": self.code.value,
            "message": self.message,
        }

        if self.details:
            error_dict["details"] = self.details

        if self.suggestion:
            error_dict["suggestion"] = self.suggestion

        if self.request_id:
            error_dict["request_id"] = self.request_id

        error_dict["timestamp"] = datetime.now(timezone.utc).isoformat()

        return {"error": error_dict}

    def to_response(self) -> JSONResponse:
        """Convert to FastAPI JSONResponse."""
        return JSONResponse(
            status_code=self.status_code,
            content=self.to_dict()
        )

    def log(self, level: str = "error"):
        """Log the error with context."""
        log_msg = f"[{self.code.value}] {self.message}"
        if self.details:
            log_msg += f" | details={self.details}"
        if self.request_id:
            log_msg += f" | request_id={self.request_id}"

        getattr(logger, level)(log_msg)


# =============================================================================
# ERROR FACTORY FUNCTIONS
# =============================================================================

def table_not_found(table: str, request_id: Optional[str] = None) -> StudioError:
    """Create table not found error."""
    return StudioError(
        code=ErrorCode.ERR_TABLE_NOT_FOUND,
        message=f"Table '{table}' not found",
        status_code=404,
        details={"table": table},
        suggestion="Check GET /api/tables for available tables",
        request_id=request_id
    )


def catalog_query_failed(engine: str, request_id: Optional[str] = None) -> StudioError:
    """Introspection failed. Driver detail is logged, never returned."""
    return StudioError(
        code=ErrorCode.ERR_CATALOG_QUERY_FAILED,
        message="Failed to read the database catalog",
        status_code=500,
        details={"engine": engine},
        suggestion="Check the server log for the underlying database error",
        request_id=request_id
    )


def request_invalid(errors: List[Dict[str, Any]], request_id: Optional[str] = None) -> StudioError:
    """Create request validation error (bad path, query or body values)."""
    return StudioError(
        code=ErrorCode.ERR_REQUEST_INVALID,
        message="Request validation failed",
        status_code=422,
        details={"errors": errors},
        suggestion="Check the request parameters against GET /docs",
        request_id=request_id
    )


def query_failed(reason: str, engine: str, request_id: Optional[str] = None) -> StudioError:
    """Create query failed error for caller-supplied SQL."""
    return StudioError(
        code=ErrorCode.ERR_QUERY_FAILED,
        message=reason,
        status_code=400,
        details={"engine": engine},
        suggestion="Fix the SQL statement and run it again",
        request_id=request_id
    )


def query_timeout(
    timeout_seconds: float,
    request_id: Optional[str] = None
) -> StudioError:
    """Create query timeout error."""
    return StudioError(
        code=ErrorCode.ERR_QUERY_TIMEOUT,
        message=f"Query exceeded {timeout_seconds:g} second timeout",
        status_code=504,
        details={"timeout_seconds": timeout_seconds},
        suggestion="Add filters or a LIMIT clause, or restart with a larger --timeout",
        request_id=request_id
    )


def connection_failed(
    reason: str,
    engine: Optional[str] = None,
    request_id: Optional[str] = None
) -> StudioError:
    """Create connection failed error."""
    details = {"reason": reason}
    if engine:
        details["engine"] = engine

    return StudioError(
        code=ErrorCode.ERR_CONNECTION_FAILED,
        message="Database connection is unavailable",
        status_code=503,
        details=details,
        suggestion="Check that the database is reachable from the server and restart it",
        request_id=request_id
    )


def internal_error(
    message: str = "An unexpected error occurred",
    details: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None
) -> StudioError:
    """Create internal error - use sparingly, prefer specific errors."""
    return StudioError(
        code=ErrorCode.ERR_INTERNAL,
        message=message,
        status_code=500,
        details=details or {},
        suggestion="If this persists, check the server log for the traceback",
        request_id=request_id
    )


def from_adapter_error(exc: AdapterError, request_id: Optional[str] = None) -> StudioError:
    """Translate an adapter failure into its structured HTTP error."""
    if isinstance(exc, TableNotFoundError):
        return table_not_found(exc.table, request_id=request_id)
    if isinstance(exc, QueryTimeoutError):
        return query_timeout(exc.timeout_seconds, request_id=request_id)
    if isinstance(exc, UserQueryError):
        reason = str(exc.original_error) if exc.original_error else str(exc)
        return query_failed(reason, exc.engine, request_id=request_id)
    if isinstance(exc, CatalogQueryError):
        return catalog_query_failed(exc.engine, request_id=request_id)
    if isinstance(exc, ConnectionError):
        return connection_failed(str(exc), engine=exc.engine, request_id=request_id)
    return StudioError(
        code=ErrorCode.ERR_ADAPTER_ERROR,
        message="Database adapter error",
        status_code=500,
        details={"engine": exc.engine},
        request_id=request_id
    )


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())[:8]


async def studio_error_handler(request: Request, exc: StudioError) -> JSONResponse:
    """Handle StudioError and return structured response."""
    if not exc.request_id:
        exc.request_id = _request_id(request)

    exc.log()

    return exc.to_response()


async def adapter_error_handler(request: Request, exc: AdapterError) -> JSONResponse:
    """Handle errors raised by the active adapter."""
    request_id = _request_id(request)

    # Full driver detail stays in the server log
    logger.error(f"{type(exc).__name__} on {exc.engine}: {exc} | request_id={request_id}")

    error = from_adapter_error(exc, request_id=request_id)
    error.log(level="warning" if error.status_code < 500 else "error")
    return error.to_response()


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle FastAPI request validation failures in the structured format."""
    errors = [
        {"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]}
        for e in exc.errors()
    ]
    error = request_invalid(errors, request_id=_request_id(request))
    error.log(level="warning")
    return error.to_response()


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTPException and convert to structured format."""
    request_id = _request_id(request)

    error_response = {
        "error": {
            "code": f"ERR_HTTP_{exc.status_code}",
            "message": str(exc.detail) if isinstance(exc.detail, str) else exc.detail.get("message", str(exc.detail)),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "request_id": request_id
        }
    }

    # If detail is already structured, merge it
    if isinstance(exc.detail, dict):
        error_response["error"]["details"] = {
            k: v for k, v in exc.detail.items()
            if k not in ("message", "error")
        }

    logger.error(f"[ERR_HTTP_{exc.status_code}] {exc.detail} | request_id={request_id}")

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    request_id = _request_id(request)

    # Log full traceback for debugging
    logger.exception(f"Unhandled exception | request_id={request_id}")

    error = internal_error(
        message="An unexpected error occurred",
        details={"exception_type": type(exc).__name__},
        request_id=request_id
    )

    return error.to_response()


# =============================================================================
# HELPER TO INSTALL HANDLERS
# =============================================================================

def install_error_handlers(app):
    """Install error handlers on FastAPI app."""
    app.add_exception_handler(StudioError, studio_error_handler)
    app.add_exception_handler(AdapterError, adapter_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    logger.debug("Structured error handlers installed")
