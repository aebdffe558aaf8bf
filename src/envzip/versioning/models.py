"""Pydantic models for the version ledger.

- ``ChangeType``: kind of field change.
- ``FieldChange``: one field's before/after values.
- ``VersionRecord``: one immutable entry in an entry's lifeline.

``created`` and ``deleted`` changes carry the whole tracked field set as
a mapping (``new_value`` resp. ``old_value``) under the field name of
the change type itself; ``modified`` changes carry plain strings.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

FieldValue = str | dict[str, str | None] | None


class ChangeType(str, Enum):
    """Kind of change recorded for a field."""

    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"


class FieldChange(BaseModel):
    """A single field change inside a version record."""

    field: str
    old_value: FieldValue = None
    new_value: FieldValue = None
    change_type: ChangeType

    model_config = {"frozen": True}


class VersionRecord(BaseModel):
    """Immutable audit record of one change to an entry.

    Attributes:
        id: Unique version id.
        entity_id: Id of the entry this record belongs to (lookup only;
            the record outlives the entry).
        project_id: Project of the entry.
        stage: Stage of the entry.
        version_number: 1-based, strictly increasing per entry.
        changes: Ordered field changes.
        author: Who made the change.
        created_at: When the record was written.
        message: Optional free text.
    """

    id: str
    entity_id: str
    project_id: str
    stage: str
    version_number: int = Field(ge=1)
    changes: list[FieldChange]
    author: str
    created_at: datetime
    message: str | None = None

    model_config = {"frozen": True}

    def change_for(self, field: str) -> FieldChange | None:
        """Return the change touching *field*, if any."""
        for change in self.changes:
            if change.field == field:
                return change
        return None

    @property
    def change_type(self) -> ChangeType:
        """Overall kind of this record (created, deleted or modified)."""
        for change in self.changes:
            if change.change_type != ChangeType.MODIFIED:
                return change.change_type
        return ChangeType.MODIFIED
