"""
Driver Workers

Blocking database drivers run off the event loop on worker threads.

- SerializedWorker: exactly one thread that owns the connection for the
  adapter's lifetime. Calls queue up and run one at a time, so the driver is
  never touched concurrently. Used for drivers that are not thread-safe
  (sqlite3, duckdb).
- PooledWorker: a bounded thread pool for drivers backed by a thread-safe
  connection pool (psycopg2, mysql-connector, pymssql, clickhouse-connect).

Both expose the same `run()` coroutine, so adapters do not care which one
they were given. No lock is held across an await; exclusivity comes from
the single-thread executor itself.
"""

import asyncio
import contextvars
import functools
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class PooledWorker:
    """Run blocking calls on a bounded thread pool."""

    def __init__(self, name: str, max_workers: int = 5):
        self.name = name
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=name
        )
        self._closed = False

    @property
    def serialized(self) -> bool:
        return self.max_workers == 1

    async def run(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run fn(*args, **kwargs) on a worker thread and await its result."""
        if self._closed:
            raise RuntimeError(f"Worker {self.name} is shut down")
        loop = asyncio.get_running_loop()
        # Carry the caller's context (request id) onto the worker thread
        call = functools.partial(contextvars.copy_context().run, fn, *args, **kwargs)
        return await loop.run_in_executor(self._executor, call)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting calls. Queued calls that have not started are dropped."""
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=wait, cancel_futures=True)
        logger.debug(f"Worker {self.name} shut down")


class SerializedWorker(PooledWorker):
    """
    Single-owner worker.

    One dedicated thread executes every call in submission order. The
    connection is opened on that thread and never leaves it.
    """

    def __init__(self, name: str):
        super().__init__(name, max_workers=1)
        self._owner: Optional[int] = None

    async def run(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        return await super().run(self._owned, fn, *args, **kwargs)

    def _owned(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        ident = threading.get_ident()
        if self._owner is None:
            self._owner = ident
        elif self._owner != ident:
            raise RuntimeError(f"Worker {self.name} ran a call outside its owner thread")
        return fn(*args, **kwargs)

    @property
    def owner_thread(self) -> Optional[int]:
        """Ident of the thread owning the connection, once the first call ran."""
        return self._owner
