"""Watch both sides and serialise sync passes.

``SyncOrchestrator`` turns local file edits and remote notifications into
calls to ``SyncEngine.run``.  At most one pass is in flight; triggers
that fire while a pass runs are coalesced (dropped), since the next pass
re-reads both sides anyway.

Local changes are detected by polling the file's content hash.  Remote
notifications arrive on a thread-safe callback and are forwarded to an
``asyncio.Queue`` consumed by the orchestrator's own task.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable

from envzip.core.async_utils import queue_from_thread, run_sync
from envzip.errors import RemoteUnavailableError
from envzip.remote.base import RemoteEvent, RemoteStore, Unsubscribe
from envzip.sync.engine import SyncEngine
from envzip.sync.models import SyncReport

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0


def subscribe_channel(
    remote: RemoteStore, project_id: str
) -> tuple[asyncio.Queue[RemoteEvent], Unsubscribe]:
    """Subscribe to *project_id* and deliver events on an asyncio queue.

    Must be called from within a running event loop; the store may
    invoke its callback from any thread.
    """
    queue, forward = queue_from_thread()
    unsubscribe = remote.subscribe(project_id, forward)
    return queue, unsubscribe


class SyncOrchestrator:
    """Run sync passes on local and remote change triggers.

    Args:
        engine: Engine performing each pass.
        poll_interval: Seconds between local file hash checks.
        direction: Direction passed to every pass.
        on_report: Called with each completed ``SyncReport``.
    """

    def __init__(
        self,
        engine: SyncEngine,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        direction: str = "bidirectional",
        on_report: Callable[[SyncReport], None] | None = None,
    ) -> None:
        self.engine = engine
        self.poll_interval = poll_interval
        self.direction = direction
        self.on_report = on_report

        self.is_syncing = False
        self.sync_count = 0
        self.last_report: SyncReport | None = None

        self._stopping = False
        self._stopped = asyncio.Event()
        self._inflight: asyncio.Future[SyncReport] | None = None
        self._tasks: list[asyncio.Task] = []
        self._queue: asyncio.Queue[RemoteEvent] | None = None
        self._unsubscribe: Unsubscribe | None = None
        self._last_hash: str | None = None

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    async def trigger(self, reason: str) -> SyncReport | None:
        """Run one pass unless one is already running or we are stopping.

        Returns:
            The report, or ``None`` if the trigger was coalesced or the
            pass failed.
        """
        if self._stopping:
            logger.debug("Ignoring trigger (%s): stopping", reason)
            return None
        if self.is_syncing:
            logger.debug("Coalescing trigger (%s): sync in progress", reason)
            return None

        self.is_syncing = True
        logger.info("Sync triggered: %s", reason)
        try:
            self._inflight = asyncio.ensure_future(
                run_sync(self.engine.run, direction=self.direction)
            )
            report = await asyncio.shield(self._inflight)
        except RemoteUnavailableError as exc:
            logger.warning("Sync skipped, remote unavailable: %s", exc)
            return None
        except Exception:
            logger.exception("Sync failed (%s)", reason)
            return None
        finally:
            self._inflight = None
            self._last_hash = await run_sync(self.engine.local.content_hash)
            self._drain_queue()
            self.is_syncing = False

        self.sync_count += 1
        self.last_report = report
        if self.on_report is not None:
            self.on_report(report)
        return report

    def _drain_queue(self) -> None:
        """Drop remote events that arrived during a pass."""
        if self._queue is None:
            return
        dropped = 0
        while not self._queue.empty():
            self._queue.get_nowait()
            dropped += 1
        if dropped:
            logger.debug("Coalesced %d remote event(s)", dropped)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, initial_sync: bool = True) -> None:
        """Subscribe to the remote, start the file poll and optionally sync."""
        queue, self._unsubscribe = subscribe_channel(
            self.engine.remote, self.engine.project_id
        )
        self._queue = queue
        self._last_hash = await run_sync(self.engine.local.content_hash)
        self._tasks = [
            asyncio.create_task(self._watch_file(), name="envzip-file-poll"),
            asyncio.create_task(
                self._consume_remote(queue), name="envzip-remote-events"
            ),
        ]
        logger.info(
            "Watching %s and %s/%s",
            self.engine.local.path,
            self.engine.project_id,
            self.engine.stage,
        )
        if initial_sync:
            await self.trigger("startup")

    async def stop(self) -> None:
        """Stop watching.  An in-flight pass is allowed to finish."""
        if self._stopping:
            return
        self._stopping = True
        inflight = self._inflight
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []
        if inflight is not None:
            with contextlib.suppress(Exception):
                await inflight
        self._stopped.set()
        logger.info("Watcher stopped after %d sync(s)", self.sync_count)

    async def wait(self) -> None:
        """Block until ``stop()`` completes."""
        await self._stopped.wait()

    # ------------------------------------------------------------------
    # Watch loops
    # ------------------------------------------------------------------

    async def _watch_file(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                current = await run_sync(self.engine.local.content_hash)
            except OSError as exc:
                logger.warning("Cannot read %s: %s", self.engine.local.path, exc)
                continue
            if current != self._last_hash and not self.is_syncing:
                self._last_hash = current
                await self.trigger("local file changed")

    async def _consume_remote(self, queue: asyncio.Queue[RemoteEvent]) -> None:
        while True:
            event = await queue.get()
            if event.entity.stage.value != self.engine.stage:
                continue
            await self.trigger(
                f"remote {event.kind.value} of {event.entity.key}"
            )
