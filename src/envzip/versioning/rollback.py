"""Rollback of entries to earlier versions.

A rollback never rewrites history: the restored values are applied
through ``EntryService.update`` which appends a new forward record.
"""

from __future__ import annotations

import logging

from envzip.entries import EntryService
from envzip.errors import NotFoundError
from envzip.models import Entry
from envzip.versioning.ledger import VersionLedger
from envzip.versioning.models import ChangeType, VersionRecord

logger = logging.getLogger(__name__)

# Key and stage are part of the entity id and never restored
RESTORABLE_FIELDS: tuple[str, ...] = ("value", "description", "kind")


def rebuild_state(
    records: list[VersionRecord], version_number: int
) -> dict[str, str | None]:
    """Fold *records* (any order) up to *version_number* into a field set.

    A ``deleted`` record folds to its pre-image, so the state at a
    deletion is the entry as it was just before it was removed.
    """
    state: dict[str, str | None] = {}
    for record in sorted(records, key=lambda r: r.version_number):
        if record.version_number > version_number:
            break
        for change in record.changes:
            if change.change_type == ChangeType.CREATED:
                state = dict(change.new_value or {})
            elif change.change_type == ChangeType.DELETED:
                state = dict(change.old_value or {})
            else:
                state[change.field] = change.new_value
    return state


class RollbackEngine:
    """Restores fields or whole entries from the version ledger.

    Args:
        entries: Entry write path; rollbacks are recorded as updates.
        ledger: Ledger to read history from.  Defaults to the ledger of
            *entries*.
    """

    def __init__(
        self, entries: EntryService, ledger: VersionLedger | None = None
    ) -> None:
        self.entries = entries
        self.ledger = ledger or entries.ledger

    def _require_version(self, version_id: str) -> VersionRecord:
        record = self.ledger.get_version(version_id)
        if record is None:
            raise NotFoundError(f"Version '{version_id}' not found")
        return record

    def rollback_field(self, version_id: str, field_name: str) -> Entry:
        """Restore one field to the value it had before *version_id*.

        Raises:
            NotFoundError: If the version, the field change or the entry
                does not exist.
            ValueError: If the field is not one of ``RESTORABLE_FIELDS``.
        """
        if field_name not in RESTORABLE_FIELDS:
            raise ValueError(
                f"Field '{field_name}' cannot be rolled back; choose one of "
                + ", ".join(RESTORABLE_FIELDS)
            )
        record = self._require_version(version_id)
        change = record.change_for(field_name)
        if change is None or change.change_type != ChangeType.MODIFIED:
            raise NotFoundError(
                f"Version '{version_id}' has no change to field '{field_name}'"
            )
        logger.info(
            "Rolling back %s of %s to version %d",
            field_name,
            record.entity_id,
            record.version_number,
        )
        return self.entries.update(
            record.entity_id,
            {field_name: change.old_value},
            message=f"Rollback {field_name} from version {record.version_number}",
        )

    def rollback_entity(self, version_id: str) -> Entry:
        """Restore an entry to its full state as of *version_id*.

        Raises:
            NotFoundError: If the version or the entry does not exist.
        """
        target = self._require_version(version_id)
        state = rebuild_state(
            self.ledger.history(target.entity_id), target.version_number
        )
        if not state:
            raise NotFoundError(
                f"No recorded state for '{target.entity_id}' "
                f"at version {target.version_number}"
            )
        partial = {f: state[f] for f in RESTORABLE_FIELDS if f in state}
        logger.info(
            "Rolling back %s to version %d",
            target.entity_id,
            target.version_number,
        )
        return self.entries.update(
            target.entity_id,
            partial,
            message=f"Rollback to version {target.version_number}",
        )
