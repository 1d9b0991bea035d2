"""
HTTP API for SQL Studio.
"""

from sqlstudio.api.routes import router

__all__ = ["router"]
