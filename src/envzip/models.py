"""Core data contracts for environment entries.

- ``Stage``: the environment stage an entry belongs to.
- ``EntryKind``: presentation / validation hint for a value.
- ``Entry``: one key/value pair scoped to a project and stage, as held
  by the remote store.
- ``Session``: explicit caller context (who is acting, on which
  project/stage) passed into every core operation.

Entries are frozen; a mutation always yields a new ``Entry`` from the
remote store.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

# Fields whose changes are recorded in the version ledger.
TRACKED_FIELDS: tuple[str, ...] = (
    "key",
    "value",
    "description",
    "kind",
    "stage",
)


class Stage(str, Enum):
    """Environment stage of a project."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class EntryKind(str, Enum):
    """Type hint attached to an entry value."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    SECRET = "secret"


class Entry(BaseModel):
    """A single environment variable held by the remote store.

    Attributes:
        id: Store-assigned identifier.
        project_id: Owning project.
        stage: Environment stage within the project.
        key: Variable name, unique within {project, stage}; immutable.
        value: Variable value (may be empty).
        kind: Type hint for the value.
        description: Optional free text.
        tags: Optional labels.
        created_at: When the entry was created.
        last_modified_at: When the entry was last written.
        last_modified_by: Identity of the last writer.
    """

    id: str
    project_id: str
    stage: Stage
    key: str = Field(min_length=1)
    value: str = ""
    kind: EntryKind = EntryKind.STRING
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    last_modified_at: datetime | None = None
    last_modified_by: str | None = None

    model_config = {"frozen": True}

    def tracked_fields(self) -> dict[str, str | None]:
        """Return the version-tracked fields as plain strings."""
        return {
            "key": self.key,
            "value": self.value,
            "description": self.description,
            "kind": self.kind.value,
            "stage": self.stage.value,
        }


@dataclass(frozen=True)
class Session:
    """Caller context for core operations.

    Attributes:
        author: Identity recorded as ``last_modified_by`` and as the
            author of version records.
        project_id: Project being synchronised.
        stage: Stage being synchronised.
    """

    author: str
    project_id: str
    stage: Stage = Stage.DEVELOPMENT
