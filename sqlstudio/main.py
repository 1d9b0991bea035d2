"""
SQL Studio - Main Application

Serves one database over a small read-mostly JSON API.

PRODUCTION FEATURES:
--------------------
- One adapter, chosen at startup and owned by the Dispatcher
- Structured errors with stable codes (errors.py)
- Free-form queries bounded by a timeout
- Structured Logging (request tracing)
"""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from sqlstudio import __version__
from sqlstudio.adapters.factory import Dispatcher, create_adapter
from sqlstudio.api.routes import router
from sqlstudio.core.config import Settings
from sqlstudio.core.logging import configure_logging, reset_request_id, set_request_id
from sqlstudio.core.targets import adapter_config
from sqlstudio.errors import install_error_handlers

logger = logging.getLogger(__name__)


def build_dispatcher(settings: Settings) -> Dispatcher:
    """Build the (unstarted) Dispatcher for the configured engine and target."""
    engine, config = adapter_config(settings)
    adapter = create_adapter(engine, config, query_timeout=settings.query_timeout)
    return Dispatcher(adapter)


# =============================================================================
# APPLICATION FACTORY
# =============================================================================

def create_app(settings: Optional[Settings] = None, dispatcher: Optional[Dispatcher] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        settings: Application settings (default: read from the environment)
        dispatcher: Pre-built Dispatcher; built from settings at startup
            when omitted
    """
    settings = settings or Settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        active = dispatcher or build_dispatcher(settings)

        # A ConnectionError here aborts startup
        await active.start()
        app.state.dispatcher = active

        try:
            tables = await active.tables()
            logger.info(
                f"Serving {active.engine} database {active.adapter.describe()} "
                f"({len(tables.tables)} tables) at {settings.api_prefix}"
            )
            yield
        finally:
            app.state.dispatcher = None
            await active.close()
            logger.info(f"{active.engine} connection closed")

    app = FastAPI(
        title="SQL Studio API",
        version=__version__,
        description="Explore a single SQL database over HTTP",
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.dispatcher = None

    install_error_handlers(app)

    # =========================================================================
    # MIDDLEWARE
    # =========================================================================

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        """Add request ID for tracing and structured logging."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        request.state.request_id = request_id

        token = set_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            reset_request_id(token)

        response.headers["X-Request-ID"] = request_id
        return response

    # The bundled UI may be served from another origin during development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix=settings.api_prefix)

    return app


app = create_app()
