"""Pydantic models for the reconciliation and sync engine.

Defines the data contracts used across all sync modules:

- ``SyncAction``: Enum of per-key reconciliation outcomes.
- ``Resolution``: Which side won a conflict.
- ``KeyChange``: A key whose value moves from one side to the other.
- ``ConflictInfo``: Inputs handed to a conflict resolver.
- ``Conflict``: A key changed on both sides, with its resolution.
- ``FailedKey``: A key whose write failed during a pass.
- ``MergeResult``: Outcome of reconciling three snapshots.
- ``LocalWriteSet`` / ``RemoteWrite``: Concrete writes for each side.
- ``SyncReport``: Aggregate results for a full sync run.
- ``SyncStatus``: Read-only comparison of both sides.

All models are frozen (immutable) for safety.  A value of ``None``
means the key is absent on that side.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class SyncAction(str, Enum):
    """Possible reconciliation outcomes for one key."""

    SKIP = "skip"
    PUSH = "push"
    PULL = "pull"
    CONFLICT = "conflict"


class Resolution(str, Enum):
    """Side whose value is kept for a conflicting key."""

    LOCAL = "local"
    REMOTE = "remote"


class RemoteOperation(str, Enum):
    """Single-entry write against the remote store."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class KeyChange(BaseModel):
    """A key that changed on one side since the last sync.

    Attributes:
        key: Variable name.
        action: ``PUSH`` (local to remote) or ``PULL`` (remote to local).
        value: New value, ``None`` when the key is being deleted.
        previous: Value on the receiving side before the change.
    """

    key: str
    action: SyncAction
    value: str | None = None
    previous: str | None = None

    model_config = {"frozen": True}

    @property
    def is_delete(self) -> bool:
        return self.value is None


class ConflictInfo(BaseModel):
    """Details about a key changed on both sides.

    Attributes:
        key: Variable name.
        local_value: Current local value (``None`` if deleted locally).
        remote_value: Current remote value (``None`` if deleted remotely).
        base_value: Value at the last sync.
        local_modified_at: Modification time of the local file.
        remote_modified_at: ``last_modified_at`` of the remote entry.
    """

    key: str
    local_value: str | None = None
    remote_value: str | None = None
    base_value: str | None = None
    local_modified_at: datetime | None = None
    remote_modified_at: datetime | None = None

    model_config = {"frozen": True}


class Conflict(BaseModel):
    """A reported conflict and how it was resolved."""

    key: str
    local_value: str | None = None
    remote_value: str | None = None
    base_value: str | None = None
    resolution: Resolution = Resolution.REMOTE
    resolved_value: str | None = None

    model_config = {"frozen": True}


class FailedKey(BaseModel):
    """A key whose write failed; it keeps its previous baseline."""

    key: str
    action: SyncAction
    error: str

    model_config = {"frozen": True}


class MergeResult(BaseModel):
    """Outcome of one reconciliation.

    Attributes:
        applied: Keys whose value moves from one side to the other,
            sorted by key.
        conflicts: Keys changed on both sides, sorted by key.
        unchanged: Number of keys that need no action.
        failed: Keys whose write failed once the result was applied.
    """

    applied: list[KeyChange] = Field(default_factory=list)
    conflicts: list[Conflict] = Field(default_factory=list)
    unchanged: int = 0
    failed: list[FailedKey] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def pushes(self) -> list[KeyChange]:
        """Changes flowing local to remote."""
        return [c for c in self.applied if c.action == SyncAction.PUSH]

    @property
    def pulls(self) -> list[KeyChange]:
        """Changes flowing remote to local."""
        return [c for c in self.applied if c.action == SyncAction.PULL]

    @property
    def is_empty(self) -> bool:
        """True when nothing would be written on either side."""
        return not self.applied and not self.conflicts


class LocalWriteSet(BaseModel):
    """Writes to apply to the local file."""

    updates: dict[str, str] = Field(default_factory=dict)
    removals: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}

    def __bool__(self) -> bool:
        return bool(self.updates or self.removals)


class RemoteWrite(BaseModel):
    """One write to apply to the remote store."""

    key: str
    operation: RemoteOperation
    value: str | None = None

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for a full sync run.

    Attributes:
        project_id: Project that was synced.
        stage: Stage that was synced.
        direction: ``pull``, ``push`` or ``bidirectional``.
        dry_run: Whether this was a dry-run (no changes applied).
        result: The reconciliation result, with ``failed`` filled in.
        skipped: Keys held back by the direction filter.
        warnings: Secondary problems (e.g. unrecorded versions).
        started_at: ISO 8601 timestamp when sync started.
        completed_at: ISO 8601 timestamp when sync completed.
    """

    project_id: str
    stage: str
    direction: str = "bidirectional"
    dry_run: bool = False
    result: MergeResult = Field(default_factory=MergeResult)
    skipped: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    @property
    def pulled(self) -> list[KeyChange]:
        """Changes written to the local file."""
        return self.result.pulls

    @property
    def pushed(self) -> list[KeyChange]:
        """Changes written to the remote store."""
        return self.result.pushes

    @property
    def conflicts(self) -> list[Conflict]:
        return self.result.conflicts

    @property
    def errors(self) -> list[FailedKey]:
        """Keys whose write failed."""
        return self.result.failed

    @property
    def success(self) -> bool:
        return not self.result.failed

    def summary(self) -> str:
        """Format a human-readable summary of the sync run.

        Returns:
            Multi-line summary string with counts by action.
        """
        lines = [
            f"Sync report for {self.project_id}/{self.stage}"
            + (" (dry run)" if self.dry_run else ""),
            f"  Pulled:     {len(self.pulled)}",
            f"  Pushed:     {len(self.pushed)}",
            f"  Conflicts:  {len(self.conflicts)}",
            f"  Unchanged:  {self.result.unchanged}",
            f"  Skipped:    {len(self.skipped)}",
            f"  Errors:     {len(self.errors)}",
        ]
        if self.warnings:
            lines.append(f"  Warnings:   {len(self.warnings)}")
        return "\n".join(lines)


class SyncStatus(BaseModel):
    """Snapshot comparison returned by ``SyncEngine.status()``."""

    project_id: str
    stage: str
    local_path: str
    local_count: int
    remote_count: int
    pending: list[KeyChange] = Field(default_factory=list)
    conflicts: list[Conflict] = Field(default_factory=list)
    last_sync: str | None = None

    model_config = {"frozen": True}

    @property
    def in_sync(self) -> bool:
        return not self.pending and not self.conflicts
