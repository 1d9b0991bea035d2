"""
Core Application Components

Configuration, connection targets, logging and dependencies.
"""

from sqlstudio.core.config import Settings, parse_duration
from sqlstudio.core.dependencies import get_dispatcher
from sqlstudio.core.logging import configure_logging

__all__ = [
    "Settings",
    "parse_duration",
    "get_dispatcher",
    "configure_logging",
]
