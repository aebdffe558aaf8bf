"""Three-way reconciliation of a local snapshot against a remote one.

For every key in the union of the last-synced baseline ``S``, the local
snapshot ``L`` and the remote snapshot ``R`` (any may be absent):

1. ``L == R``: unchanged.
2. only local changed (``R == S``): push.
3. only remote changed (``L == S``): pull.
4. both changed to different values: conflict, resolved by the
   configured policy and always reported.

A key never synced before that exists on one side only falls under 2 or
3 since its baseline is absent.  The engine is pure: it reads its inputs
and returns data, and callers perform the writes.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime

from envzip.models import Entry
from envzip.sync.models import (
    Conflict,
    ConflictInfo,
    KeyChange,
    LocalWriteSet,
    MergeResult,
    RemoteOperation,
    RemoteWrite,
    Resolution,
    SyncAction,
)
from envzip.sync.resolver import ConflictResolver, RemoteWinsResolver

logger = logging.getLogger(__name__)


class ReconciliationEngine:
    """Classify keys and derive the write-sets for both sides.

    Args:
        resolver: Conflict policy.  Defaults to remote-wins.
    """

    def __init__(self, resolver: ConflictResolver | None = None) -> None:
        self.resolver = resolver or RemoteWinsResolver()

    def classify(
        self,
        local: str | None,
        remote: str | None,
        base: str | None,
    ) -> SyncAction:
        """Decide the action for one key from its three values."""
        if local == remote:
            return SyncAction.SKIP
        if remote == base:
            return SyncAction.PUSH
        if local == base:
            return SyncAction.PULL
        return SyncAction.CONFLICT

    def reconcile(
        self,
        last_synced: Mapping[str, str],
        local: Mapping[str, str],
        remote: Mapping[str, Entry],
        local_modified_at: datetime | None = None,
    ) -> MergeResult:
        """Compute the merge result for three snapshots.

        Args:
            last_synced: Baseline from the previous successful pass.
            local: Current local snapshot.
            remote: Current remote snapshot, indexed by key.
            local_modified_at: Modification time of the local file, used
                by timestamp-based conflict policies.

        Returns:
            A ``MergeResult`` with ``applied`` and ``conflicts`` sorted
            by key and an empty ``failed`` list.
        """
        applied: list[KeyChange] = []
        conflicts: list[Conflict] = []
        unchanged = 0

        for key in sorted(set(last_synced) | set(local) | set(remote)):
            entry = remote.get(key)
            local_value = local.get(key)
            remote_value = entry.value if entry is not None else None
            base_value = last_synced.get(key)

            action = self.classify(local_value, remote_value, base_value)
            if action == SyncAction.SKIP:
                unchanged += 1
            elif action == SyncAction.PUSH:
                applied.append(
                    KeyChange(
                        key=key,
                        action=action,
                        value=local_value,
                        previous=remote_value,
                    )
                )
            elif action == SyncAction.PULL:
                applied.append(
                    KeyChange(
                        key=key,
                        action=action,
                        value=remote_value,
                        previous=local_value,
                    )
                )
            else:
                info = ConflictInfo(
                    key=key,
                    local_value=local_value,
                    remote_value=remote_value,
                    base_value=base_value,
                    local_modified_at=local_modified_at,
                    remote_modified_at=(
                        entry.last_modified_at if entry is not None else None
                    ),
                )
                resolution = self.resolver.resolve(info)
                resolved = (
                    local_value
                    if resolution == Resolution.LOCAL
                    else remote_value
                )
                logger.info(
                    "Conflict on %s resolved in favour of %s",
                    key,
                    resolution.value,
                )
                conflicts.append(
                    Conflict(
                        key=key,
                        local_value=local_value,
                        remote_value=remote_value,
                        base_value=base_value,
                        resolution=resolution,
                        resolved_value=resolved,
                    )
                )

        return MergeResult(
            applied=applied, conflicts=conflicts, unchanged=unchanged
        )

    # ------------------------------------------------------------------
    # Write-sets
    # ------------------------------------------------------------------

    def apply_and_get_local_updates(
        self, result: MergeResult
    ) -> LocalWriteSet:
        """Writes the local file needs: pulls plus remote-won conflicts."""
        updates: dict[str, str] = {}
        removals: list[str] = []

        def _take(key: str, value: str | None) -> None:
            if value is None:
                removals.append(key)
            else:
                updates[key] = value

        for change in result.pulls:
            _take(change.key, change.value)
        for conflict in result.conflicts:
            if conflict.resolution == Resolution.REMOTE:
                _take(conflict.key, conflict.resolved_value)
        return LocalWriteSet(updates=updates, removals=sorted(removals))

    def apply_and_get_remote_updates(
        self, result: MergeResult
    ) -> list[RemoteWrite]:
        """Writes the remote store needs: pushes plus local-won conflicts."""
        writes: list[RemoteWrite] = []

        def _take(key: str, value: str | None, existing: str | None) -> None:
            if value is None:
                op = RemoteOperation.DELETE
            elif existing is None:
                op = RemoteOperation.CREATE
            else:
                op = RemoteOperation.UPDATE
            writes.append(RemoteWrite(key=key, operation=op, value=value))

        for change in result.pushes:
            _take(change.key, change.value, change.previous)
        for conflict in result.conflicts:
            if conflict.resolution == Resolution.LOCAL:
                _take(
                    conflict.key,
                    conflict.resolved_value,
                    conflict.remote_value,
                )
        return sorted(writes, key=lambda w: w.key)


def next_baseline(
    previous: Mapping[str, str],
    result: MergeResult,
    local: Mapping[str, str],
    held: Iterable[str] = (),
) -> dict[str, str]:
    """Baseline after applying *result*, keeping failed keys at their old value.

    Args:
        previous: Baseline the pass started from.
        result: Merge result with ``failed`` filled in.
        local: Local snapshot the pass started from.
        held: Keys whose writes were skipped (direction filter); like
            failed keys they keep their previous baseline.

    Returns:
        The new last-synced snapshot.
    """
    failed = {f.key for f in result.failed} | set(held)
    baseline = dict(local)
    for change in result.applied:
        if change.action == SyncAction.PULL:
            _set(baseline, change.key, change.value)
    for conflict in result.conflicts:
        _set(baseline, conflict.key, conflict.resolved_value)
    for key in failed:
        _set(baseline, key, previous.get(key))
    return baseline


def _set(mapping: dict[str, str], key: str, value: str | None) -> None:
    if value is None:
        mapping.pop(key, None)
    else:
        mapping[key] = value
