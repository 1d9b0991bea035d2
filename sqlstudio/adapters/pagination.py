"""
Pagination Engine

Fixed page size, 1-based page numbers. Every paginated read orders by the
first column reported by the table's structural introspection.
"""

from typing import Optional, Sequence, Tuple

ROWS_PER_PAGE = 50


def page_window(page: int, page_size: int = ROWS_PER_PAGE) -> Tuple[int, int]:
    """
    Compute the (limit, offset) window for a page.

    Raises:
        ValueError: If page is lower than 1
    """
    if page < 1:
        raise ValueError(f"Page must be >= 1, got {page}")
    return page_size, (page - 1) * page_size


def sort_key(columns: Sequence[str]) -> Optional[str]:
    """Column used to order a paginated read, or None for column-less tables."""
    return columns[0] if columns else None

