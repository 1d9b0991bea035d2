"""
FastAPI Dependencies

Reusable dependencies for dependency injection.
"""

from fastapi import Request

from sqlstudio.adapters.factory import Dispatcher
from sqlstudio.errors import internal_error


def get_dispatcher(request: Request) -> Dispatcher:
    """The Dispatcher started by the application lifespan."""
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        raise internal_error("Database adapter is not initialized")
    return dispatcher
