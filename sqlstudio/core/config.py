"""
Configuration Management

Centralized configuration using Pydantic Settings. Every field can be set
through a SQL_STUDIO_-prefixed environment variable or a .env file; the
command line builds a Settings from its own options.
"""

import re
from typing import Any, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DURATION = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-z]*)\s*$", re.IGNORECASE)

_UNIT_SECONDS = {
    "": 1.0,
    "s": 1.0,
    "sec": 1.0,
    "secs": 1.0,
    "second": 1.0,
    "seconds": 1.0,
    "ms": 0.001,
    "msec": 0.001,
    "msecs": 0.001,
    "millis": 0.001,
    "m": 60.0,
    "min": 60.0,
    "mins": 60.0,
    "minute": 60.0,
    "minutes": 60.0,
    "h": 3600.0,
    "hr": 3600.0,
    "hour": 3600.0,
    "hours": 3600.0,
}


def parse_duration(value: Any) -> float:
    """
    Parse a human duration into seconds.

    Accepts bare numbers (seconds) and strings such as "5s", "5secs",
    "500ms" or "2m".

    Raises:
        ValueError: If the value cannot be parsed or is not positive
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = float(value)
    else:
        match = _DURATION.match(str(value))
        if not match or match.group(2).lower() not in _UNIT_SECONDS:
            raise ValueError(f"Invalid duration: {value!r}")
        seconds = float(match.group(1)) * _UNIT_SECONDS[match.group(2).lower()]

    if seconds <= 0:
        raise ValueError(f"Duration must be positive: {value!r}")
    return seconds


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="SQL_STUDIO_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    engine: str = "sqlite"
    target: str = Field(default="preview", description="File path or connection URL")
    schema_name: Optional[str] = None
    auth_token: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    database: Optional[str] = None
    pool_size: int = Field(default=5, ge=1)

    # Server
    host: str = "127.0.0.1"
    port: int = 3030
    base_path: str = ""
    query_timeout: float = 5.0

    # Logging
    log_level: str = "INFO"

    @field_validator("query_timeout", mode="before")
    @classmethod
    def _parse_timeout(cls, value: Any) -> float:
        return parse_duration(value)

    @field_validator("base_path")
    @classmethod
    def _normalize_base_path(cls, value: str) -> str:
        value = value.strip().strip("/")
        return f"/{value}" if value else ""

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()

    @property
    def api_prefix(self) -> str:
        return f"{self.base_path}/api"
