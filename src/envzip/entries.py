"""Entry mutations with version recording.

``EntryService`` is the single write path to the remote store used by
sync pushes and rollbacks.  Each mutation is performed first; the
matching version record is written as a second step whose failure is
logged and collected in ``warnings`` but never undoes or fails the
mutation.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from envzip.errors import VersionRecordError
from envzip.models import Entry, EntryKind, Session
from envzip.remote.base import RemoteStore, document_id
from envzip.versioning.ledger import VersionLedger
from envzip.versioning.models import VersionRecord

logger = logging.getLogger(__name__)


class EntryService:
    """Create, update and delete entries on behalf of a session.

    Args:
        remote: Remote store holding the entries.
        ledger: Version ledger receiving one record per mutation.
        session: Caller context (author, project, stage).
    """

    def __init__(
        self,
        remote: RemoteStore,
        ledger: VersionLedger,
        session: Session,
    ) -> None:
        self.remote = remote
        self.ledger = ledger
        self.session = session
        self.warnings: list[str] = []

    def entity_id(self, key: str) -> str:
        """Id of *key* in the session's project and stage."""
        return document_id(
            self.session.project_id, self.session.stage.value, key
        )

    def create(
        self,
        key: str,
        value: str,
        kind: EntryKind = EntryKind.STRING,
        description: str | None = None,
        tags: list[str] | None = None,
        message: str | None = None,
    ) -> Entry:
        """Create a new entry in the session's project and stage."""
        entry = self.remote.create(
            {
                "project_id": self.session.project_id,
                "stage": self.session.stage,
                "key": key,
                "value": value,
                "kind": kind,
                "description": description,
                "tags": list(tags or []),
                "last_modified_by": self.session.author,
            }
        )
        self._record(
            "create",
            entry,
            lambda: self.ledger.record_create(
                entry, self.session.author, message
            ),
        )
        return entry

    def update(
        self,
        entity_id: str,
        partial: Mapping[str, Any],
        message: str | None = None,
    ) -> Entry:
        """Apply *partial* to an entry.

        Raises:
            NotFoundError: If the entry does not exist.
            ValueError: If *partial* tries to change the key or the stage,
                both of which are encoded in *entity_id*.
        """
        old = self.remote.get(entity_id)
        if "key" in partial and partial["key"] != old.key:
            raise ValueError(
                f"Cannot rename '{old.key}': keys are immutable, "
                "delete and re-create instead"
            )
        if "stage" in partial and partial["stage"] != old.stage:
            raise ValueError(
                f"Cannot move '{old.key}' to another stage: the stage is "
                "part of the entry id, create it in that stage instead"
            )
        fields = dict(partial)
        fields["last_modified_by"] = self.session.author
        new = self.remote.update(entity_id, fields)
        self._record(
            "update",
            new,
            lambda: self.ledger.record_update(
                old, new, self.session.author, message
            ),
        )
        return new

    def delete(self, entity_id: str, message: str | None = None) -> Entry:
        """Delete an entry and return its final state.

        Raises:
            NotFoundError: If the entry does not exist.
        """
        old = self.remote.get(entity_id)
        self.remote.delete(entity_id)
        self._record(
            "delete",
            old,
            lambda: self.ledger.record_delete(
                old, self.session.author, message
            ),
        )
        return old

    def _record(
        self,
        operation: str,
        entry: Entry,
        write,
    ) -> VersionRecord | None:
        try:
            return write()
        except VersionRecordError as exc:
            warning = f"Version not recorded for {operation} of {entry.key}: {exc}"
            logger.warning(warning)
            self.warnings.append(warning)
            return None
