"""
Timeout Governor

Bounds the wall-clock duration of free-form queries. This is the single
enforcement point for every adapter: the whole query call is wrapped in
`asyncio.wait_for`. On expiry the optional `on_timeout` hook runs so the
adapter can interrupt the backend, and a QueryTimeoutError is raised.

A QueryTicket ties a timeout to the one statement it belongs to. The worker
thread marks the ticket running on a backend handle while the statement
executes; the hook interrupts that handle only while the ticket is running.
A query still queued behind other work is dropped, never interrupted, so a
timeout cannot abort a statement issued by another call.
"""

import asyncio
import inspect
import logging
import threading
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Iterator, Optional, TypeVar, Union

from sqlstudio.adapters.exceptions import QueryTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_QUERY_TIMEOUT = 5.0


class QueryTicket:
    """
    One free-form query, shared by the caller and the worker thread.

    Example:
        ticket = QueryTicket(engine="sqlite")
        # worker thread
        with ticket.running_on(conn):
            cursor.execute(sql)
        # after the timeout fired
        ticket.cancel(lambda conn: conn.interrupt())
    """

    def __init__(self, engine: str = "unknown"):
        self.engine = engine
        self._lock = threading.Lock()
        self._handle: Any = None
        self.running = False
        self.cancelled = False

    @contextmanager
    def running_on(self, handle: Any) -> Iterator[None]:
        """
        Mark the query as executing on handle for the duration of the block.

        Raises:
            QueryTimeoutError: If the query was cancelled before it started
        """
        with self._lock:
            if self.cancelled:
                raise QueryTimeoutError(
                    "Query cancelled before it started",
                    engine=self.engine,
                    timeout_seconds=0.0
                )
            self._handle = handle
            self.running = True
        try:
            yield
        finally:
            # Waits for an interrupt in progress, so the handle is never
            # interrupted once it has moved on to another statement
            with self._lock:
                self.running = False
                self._handle = None

    def cancel(self, interrupt: Callable[[Any], None]) -> bool:
        """
        Cancel the query. Calls interrupt(handle) if it is executing.

        Returns:
            True if a running statement was interrupted
        """
        with self._lock:
            self.cancelled = True
            if not self.running:
                return False
            interrupt(self._handle)
            return True


@contextmanager
def tracked(ticket: Optional[QueryTicket], handle: Any) -> Iterator[None]:
    """ticket.running_on(handle), or nothing for statements without a ticket."""
    if ticket is None:
        yield
        return
    with ticket.running_on(handle):
        yield


class TimeoutGovernor:
    """
    Wraps awaitables with a maximum duration.

    Example:
        governor = TimeoutGovernor(5.0, engine="sqlite")
        result = await governor.run(
            adapter.execute_query(sql, ticket),
            on_timeout=lambda: adapter.cancel(ticket)
        )
    """

    def __init__(self, seconds: float = DEFAULT_QUERY_TIMEOUT, engine: str = "unknown"):
        if seconds <= 0:
            raise ValueError(f"Timeout must be positive, got {seconds}")
        self.seconds = seconds
        self.engine = engine

    async def run(
        self,
        awaitable: Awaitable[T],
        on_timeout: Optional[Callable[[], Union[None, Awaitable[None]]]] = None
    ) -> T:
        """
        Await awaitable within the bound.

        on_timeout may be a plain callable or return an awaitable; either way
        it completes before QueryTimeoutError is raised.
        """
        try:
            return await asyncio.wait_for(awaitable, timeout=self.seconds)
        except asyncio.TimeoutError as e:
            logger.warning(f"Query exceeded {self.seconds}s timeout on {self.engine}")
            if on_timeout is not None:
                outcome = on_timeout()
                if inspect.isawaitable(outcome):
                    await outcome
            raise QueryTimeoutError(
                f"Query exceeded {self.seconds:g} second timeout",
                engine=self.engine,
                timeout_seconds=self.seconds,
                original_error=e
            ) from e
