"""Bridges between the blocking store layer and asyncio.

Remote stores, the version ledger and the local ``.env`` file are plain
synchronous code.  The watcher and the MCP handlers reach them through
``run_sync`` / ``run_sync_limited``; remote change notifications, which
may fire on a store's own polling thread, reach the loop through
``queue_from_thread``.
"""

import asyncio
import logging
from typing import Any, Callable, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)

# Caps concurrent remote calls from MCP handlers; set by the lifespan
_semaphore: asyncio.Semaphore | None = None


def init_semaphore(max_parallel: int = 2) -> None:
    """Bound concurrent ``run_sync_limited`` calls to *max_parallel*."""
    global _semaphore
    _semaphore = asyncio.Semaphore(max_parallel)
    logger.info(
        "Remote request semaphore initialized: max_parallel=%d",
        max_parallel,
    )


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Call a blocking store or file operation on a worker thread.

    Example:
        report = await run_sync(engine.run, direction="pull")
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def run_sync_limited(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Like ``run_sync``, but waits for a free remote request slot first.

    Without ``init_semaphore`` (CLI, tests) calls are not bounded.
    """
    if _semaphore is None:
        return await asyncio.to_thread(func, *args, **kwargs)
    if _semaphore.locked():
        logger.debug(
            "All remote request slots busy, queueing %s",
            getattr(func, "__qualname__", func),
        )
    async with _semaphore:
        return await asyncio.to_thread(func, *args, **kwargs)


def queue_from_thread() -> tuple[asyncio.Queue[T], Callable[[T], None]]:
    """Create a queue on the running loop plus a callback that feeds it.

    The callback is safe to call from any thread, including the loop's
    own.  Items pushed after the loop has closed are dropped with a
    debug message, since a store's poller can outlive the watcher by one
    tick.

    Must be called from within a running event loop.
    """
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[T] = asyncio.Queue()

    def _put(item: T) -> None:
        try:
            loop.call_soon_threadsafe(queue.put_nowait, item)
        except RuntimeError:
            logger.debug("Event loop closed, dropping %r", item)

    return queue, _put
