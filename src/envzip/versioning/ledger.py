"""Append-only change history of entries.

``VersionLedger`` diffs entry states into ``VersionRecord`` objects and
answers history queries.  Version numbers are assigned as
``max(existing) + 1`` per entity so that a gap left by a lost write
never produces a duplicate number.
"""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from collections.abc import Callable
from datetime import datetime, timezone

from envzip.errors import VersionRecordError
from envzip.models import TRACKED_FIELDS, Entry
from envzip.versioning.models import ChangeType, FieldChange, VersionRecord
from envzip.versioning.store import VersionStore

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50
RECENT_ACTIVITY_SIZE = 10


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


def calculate_changes(old: Entry, new: Entry) -> list[FieldChange]:
    """Return one ``modified`` change per tracked field that differs."""
    before = old.tracked_fields()
    after = new.tracked_fields()
    return [
        FieldChange(
            field=name,
            old_value=before[name],
            new_value=after[name],
            change_type=ChangeType.MODIFIED,
        )
        for name in TRACKED_FIELDS
        if before[name] != after[name]
    ]


class VersionLedger:
    """Records and queries entry versions.

    Args:
        store: Backend the records are appended to.
        clock: Callable returning the current time; defaults to UTC now.
        id_factory: Callable returning a fresh version id.
    """

    def __init__(
        self,
        store: VersionStore,
        clock: Callable[[], datetime] | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._store = store
        self._clock = clock or _utcnow
        self._id_factory = id_factory or _new_id

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_create(
        self, entity: Entry, author: str, message: str | None = None
    ) -> VersionRecord:
        """Record the creation of *entity*.

        A new key gets version 1.  Ids are ``<project>_<stage>_<key>``, so
        a key re-created after a delete reuses its id; the record then
        continues that id's sequence instead of restarting at 1.

        Raises:
            VersionRecordError: If the store cannot be read or written.
        """
        change = FieldChange(
            field=ChangeType.CREATED.value,
            old_value=None,
            new_value=entity.tracked_fields(),
            change_type=ChangeType.CREATED,
        )
        return self._append(entity, [change], author, message)

    def record_update(
        self,
        old: Entry,
        new: Entry,
        author: str,
        message: str | None = None,
    ) -> VersionRecord | None:
        """Record an update; returns None when no tracked field changed.

        Raises:
            VersionRecordError: If the store cannot be read or written.
        """
        changes = calculate_changes(old, new)
        if not changes:
            logger.debug("No tracked change on %s, skipping version", new.key)
            return None
        return self._append(new, changes, author, message)

    def record_delete(
        self, entity: Entry, author: str, message: str | None = None
    ) -> VersionRecord:
        """Record the deletion of *entity*, keeping its final field set.

        Raises:
            VersionRecordError: If the store cannot be read or written.
        """
        change = FieldChange(
            field=ChangeType.DELETED.value,
            old_value=entity.tracked_fields(),
            new_value=None,
            change_type=ChangeType.DELETED,
        )
        return self._append(entity, [change], author, message)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def history(self, entity_id: str) -> list[VersionRecord]:
        """All versions of one entity, newest version number first."""
        records = self._store.list_for_entity(entity_id)
        return sorted(records, key=lambda r: r.version_number, reverse=True)

    def history_for_container(
        self, project_id: str, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[VersionRecord]:
        """Versions across a project, most recent first, at most *limit*."""
        records = sorted(
            self._store.list_for_project(project_id),
            key=lambda r: r.created_at,
            reverse=True,
        )
        return records[: max(limit, 0)]

    def history_for_stage(
        self,
        project_id: str,
        stage: str,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> list[VersionRecord]:
        """Like ``history_for_container`` but restricted to one stage."""
        records = [
            r
            for r in self._store.list_for_project(project_id)
            if r.stage == stage
        ]
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records[: max(limit, 0)]

    def get_version(self, version_id: str) -> VersionRecord | None:
        """Look up one version record by id."""
        return self._store.get(version_id)

    def statistics(self, project_id: str) -> dict:
        """Summarise a project's history.

        Returns:
            Dict with ``total_versions``, ``by_stage`` and
            ``by_change_type`` counters, and ``recent_activity`` (the
            last ten records, newest first).
        """
        records = sorted(
            self._store.list_for_project(project_id),
            key=lambda r: r.created_at,
            reverse=True,
        )
        return {
            "total_versions": len(records),
            "by_stage": dict(Counter(r.stage for r in records)),
            "by_change_type": dict(
                Counter(r.change_type.value for r in records)
            ),
            "recent_activity": records[:RECENT_ACTIVITY_SIZE],
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _next_version_number(self, entity_id: str) -> int:
        records = self._store.list_for_entity(entity_id)
        return max((r.version_number for r in records), default=0) + 1

    def _append(
        self,
        entity: Entry,
        changes: list[FieldChange],
        author: str,
        message: str | None,
    ) -> VersionRecord:
        try:
            record = VersionRecord(
                id=self._id_factory(),
                entity_id=entity.id,
                project_id=entity.project_id,
                stage=entity.stage.value,
                version_number=self._next_version_number(entity.id),
                changes=changes,
                author=author,
                created_at=self._clock(),
                message=message,
            )
            self._store.append(record)
        except VersionRecordError:
            raise
        except Exception as exc:
            raise VersionRecordError(
                f"Could not record version for {entity.key}: {exc}"
            ) from exc
        logger.debug(
            "Recorded version %d of %s (%s)",
            record.version_number,
            entity.key,
            record.change_type.value,
        )
        return record
