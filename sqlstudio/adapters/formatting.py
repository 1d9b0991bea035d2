"""
Formatting helpers shared by adapters.
"""

import os
from typing import Iterable, List, Tuple
from urllib.parse import urlsplit, urlunsplit

from sqlstudio.models import Count

# Files above this size skip page-accounting size queries
LARGE_FILE_THRESHOLD = 5_000_000_000
LARGE_FILE_PLACEHOLDER = "> 5GB"

_UNITS = ["B", "KB", "MB", "GB", "TB"]


def format_size(size: float) -> str:
    """
    Render a byte count with 1024-based units.

    Example:
        format_size(1536) -> "1.50 KB"
    """
    size = float(size or 0)
    unit = 0
    while size >= 1024 and unit < len(_UNITS) - 1:
        size /= 1024
        unit += 1
    return f"{size:.2f} {_UNITS[unit]}"


def is_large_file(path: str) -> bool:
    return os.path.getsize(path) > LARGE_FILE_THRESHOLD


def ranked(pairs: Iterable[Tuple[str, int]]) -> List[Count]:
    """Overview ranking: descending by count, ties by name."""
    counts = [Count(name=name, count=int(count or 0)) for name, count in pairs]
    counts.sort(key=lambda c: (-c.count, c.name))
    return counts


def listed(pairs: Iterable[Tuple[str, int]]) -> List[Count]:
    """Table listing: ascending by count, ties by name."""
    counts = [Count(name=name, count=int(count or 0)) for name, count in pairs]
    counts.sort(key=lambda c: (c.count, c.name))
    return counts


def by_name_length(names: Iterable[str]) -> List[str]:
    """Autocomplete order: shortest table name first, ties by name."""
    return sorted(names, key=lambda n: (len(n), n))


def redact_url(url: str) -> str:
    """Drop the password from a connection URL for logging."""
    parts = urlsplit(url)
    if not parts.password:
        return url
    netloc = parts.hostname or ""
    if parts.username:
        netloc = f"{parts.username}:***@{netloc}"
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))
