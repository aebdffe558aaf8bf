"""Core sync engine that runs one reconciliation pass for a project stage.

The ``SyncEngine`` ties together the local store, remote store, entry
service, reconciler and persisted state.  It:

1. Loads the last-synced baseline for the project stage.
2. Reads the local snapshot and lists the remote snapshot.
3. Reconciles the three snapshots.
4. Filters changes by the requested direction.
5. Pushes remote writes one key at a time through ``EntryService``.
6. Writes the local file once through ``LocalStore``.
7. Persists the new baseline after both sides are written.
8. Builds and returns a ``SyncReport``.

Error handling is per-key: a single failed write does not abort the
pass; the key keeps its old baseline so the next pass retries it.  A
failure while reading the remote snapshot aborts the pass with nothing
written.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from envzip.entries import EntryService
from envzip.local_store import LocalStore
from envzip.models import Entry
from envzip.remote.base import RemoteStore, snapshot
from envzip.sync.models import (
    FailedKey,
    LocalWriteSet,
    MergeResult,
    RemoteOperation,
    RemoteWrite,
    Resolution,
    SyncAction,
    SyncReport,
    SyncStatus,
)
from envzip.sync.reconcile import ReconciliationEngine, next_baseline
from envzip.sync.state import SyncState

logger = logging.getLogger(__name__)

DIRECTIONS = ("bidirectional", "pull", "push")


class SyncEngine:
    """Run sync passes between a local file and one remote project stage.

    Args:
        local: Store for the local ``.env`` file.
        remote: Remote store (read side).
        entries: Entry write path for remote mutations; also supplies
            the session (author, project, stage).
        state_store: Persistence for the last-synced baseline.
        reconciler: Reconciliation engine.  Defaults to remote-wins.
    """

    def __init__(
        self,
        local: LocalStore,
        remote: RemoteStore,
        entries: EntryService,
        state_store: SyncState,
        reconciler: ReconciliationEngine | None = None,
    ) -> None:
        self.local = local
        self.remote = remote
        self.entries = entries
        self.state_store = state_store
        self.reconciler = reconciler or ReconciliationEngine()
        self.session = entries.session

    @property
    def project_id(self) -> str:
        return self.session.project_id

    @property
    def stage(self) -> str:
        return self.session.stage.value

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(
        self, dry_run: bool = False, direction: str = "bidirectional"
    ) -> SyncReport:
        """Execute one sync pass.

        Args:
            dry_run: If ``True``, compute actions but do not execute them.
            direction: ``bidirectional``, ``pull`` or ``push``.

        Returns:
            A ``SyncReport`` summarising what was (or would be) done.

        Raises:
            RemoteUnavailableError: If the remote snapshot cannot be read.
            ValueError: If *direction* is unknown.
        """
        if direction not in DIRECTIONS:
            raise ValueError(
                f"Unknown direction '{direction}': must be one of {list(DIRECTIONS)}"
            )
        started_at = datetime.now(timezone.utc).isoformat()

        state = self.state_store.load(self.project_id, self.stage)
        baseline = SyncState.baseline(state)
        local_snapshot = self.local.read()
        remote_snapshot = snapshot(
            self.remote.list(self.project_id, self.stage)
        )

        result = self.reconciler.reconcile(
            baseline,
            local_snapshot,
            remote_snapshot,
            local_modified_at=self.local.modified_at(),
        )
        result, held = self._filter_by_direction(result, direction)

        if dry_run:
            return SyncReport(
                project_id=self.project_id,
                stage=self.stage,
                direction=direction,
                dry_run=True,
                result=result,
                skipped=sorted(held),
                started_at=started_at,
                completed_at=datetime.now(timezone.utc).isoformat(),
            )

        warnings_start = len(self.entries.warnings)
        failed: list[FailedKey] = []

        remote_writes = [
            w
            for w in self.reconciler.apply_and_get_remote_updates(result)
            if w.key not in held
        ]
        for write in remote_writes:
            try:
                self._apply_remote(write, remote_snapshot)
            except Exception as exc:
                logger.error("Failed to push %s: %s", write.key, exc)
                failed.append(
                    FailedKey(
                        key=write.key, action=SyncAction.PUSH, error=str(exc)
                    )
                )

        local_writes = self.reconciler.apply_and_get_local_updates(result)
        local_writes = LocalWriteSet(
            updates={
                k: v for k, v in local_writes.updates.items() if k not in held
            },
            removals=[k for k in local_writes.removals if k not in held],
        )
        if local_writes:
            try:
                self.local.write(local_writes.updates, local_writes.removals)
            except OSError as exc:
                logger.error("Failed to write %s: %s", self.local.path, exc)
                failed.extend(
                    FailedKey(key=key, action=SyncAction.PULL, error=str(exc))
                    for key in sorted(
                        [*local_writes.updates, *local_writes.removals]
                    )
                )

        result = result.model_copy(update={"failed": failed})
        SyncState.set_baseline(
            state, next_baseline(baseline, result, local_snapshot, held)
        )
        state["local_hash"] = SyncState.content_hash(self.local.read_text())
        self.state_store.save(self.project_id, self.stage, state)

        report = SyncReport(
            project_id=self.project_id,
            stage=self.stage,
            direction=direction,
            result=result,
            skipped=sorted(held),
            warnings=self.entries.warnings[warnings_start:],
            started_at=started_at,
            completed_at=datetime.now(timezone.utc).isoformat(),
        )
        logger.info(
            "Sync %s/%s done: %d pulled, %d pushed, %d conflicts, %d failed",
            self.project_id,
            self.stage,
            len(report.pulled),
            len(report.pushed),
            len(report.conflicts),
            len(report.errors),
        )
        return report

    def status(self) -> SyncStatus:
        """Compare both sides without writing anything.

        Raises:
            RemoteUnavailableError: If the remote snapshot cannot be read.
        """
        state = self.state_store.load(self.project_id, self.stage)
        local_snapshot = self.local.read()
        remote_snapshot = snapshot(
            self.remote.list(self.project_id, self.stage)
        )
        result = self.reconciler.reconcile(
            SyncState.baseline(state),
            local_snapshot,
            remote_snapshot,
            local_modified_at=self.local.modified_at(),
        )
        return SyncStatus(
            project_id=self.project_id,
            stage=self.stage,
            local_path=str(self.local.path),
            local_count=len(local_snapshot),
            remote_count=len(remote_snapshot),
            pending=result.applied,
            conflicts=result.conflicts,
            last_sync=state.get("last_sync"),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _apply_remote(
        self, write: RemoteWrite, remote_snapshot: dict[str, Entry]
    ) -> None:
        """Apply one remote write through the entry service."""
        if write.operation == RemoteOperation.CREATE:
            self.entries.create(
                write.key, write.value or "", message="Created by sync"
            )
            return
        entry = remote_snapshot[write.key]
        if write.operation == RemoteOperation.UPDATE:
            self.entries.update(
                entry.id, {"value": write.value}, message="Updated by sync"
            )
        else:
            self.entries.delete(entry.id, message="Deleted by sync")

    def _filter_by_direction(
        self, result: MergeResult, direction: str
    ) -> tuple[MergeResult, set[str]]:
        """Hold back changes that are not allowed by the direction.

        Returns:
            The filtered result and the keys that were held back.
            Held conflicts stay in the report but are not written.
        """
        if direction == "bidirectional":
            return result, set()

        if direction == "push":
            blocked_action, blocked_side = SyncAction.PULL, Resolution.REMOTE
        else:
            blocked_action, blocked_side = SyncAction.PUSH, Resolution.LOCAL

        held = {c.key for c in result.applied if c.action == blocked_action}
        held |= {
            c.key for c in result.conflicts if c.resolution == blocked_side
        }
        if held:
            logger.info(
                "Holding back %d change(s) (direction=%s)",
                len(held),
                direction,
            )
        applied = [c for c in result.applied if c.key not in held]
        return result.model_copy(update={"applied": applied}), held
