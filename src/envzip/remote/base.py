"""The remote store contract consumed by the sync and versioning core.

The remote store is the authoritative copy of every entry.  The core
only relies on single-entry atomic writes; there are no multi-key
transactions.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any, Protocol

from pydantic import BaseModel

from envzip.models import Entry


class EventKind(str, Enum):
    """Kind of change announced by a remote notification."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class RemoteEvent(BaseModel):
    """A change notification delivered by ``RemoteStore.subscribe``."""

    kind: EventKind
    entity: Entry

    model_config = {"frozen": True}


EventCallback = Callable[[RemoteEvent], None]
Unsubscribe = Callable[[], None]


class RemoteStore(Protocol):
    """Protocol every remote store adapter must satisfy."""

    def list(self, project_id: str, stage: str) -> list[Entry]:
        """Return all entries of one project stage."""
        ...  # pragma: no cover

    def get(self, entity_id: str) -> Entry:
        """Return one entry.  Raises ``NotFoundError`` if missing."""
        ...  # pragma: no cover

    def create(self, fields: Mapping[str, Any]) -> Entry:
        """Create an entry; the store assigns id and timestamps."""
        ...  # pragma: no cover

    def update(
        self, entity_id: str, partial: Mapping[str, Any]
    ) -> Entry:
        """Update some fields of an entry; the store refreshes its timestamp."""
        ...  # pragma: no cover

    def delete(self, entity_id: str) -> None:
        """Delete an entry.  Raises ``NotFoundError`` if missing."""
        ...  # pragma: no cover

    def subscribe(
        self, project_id: str, callback: EventCallback
    ) -> Unsubscribe:
        """Register *callback* for changes in *project_id*."""
        ...  # pragma: no cover


def document_id(project_id: str, stage: str, key: str) -> str:
    """Deterministic entry id: ``<project>_<stage>_<key>``."""
    return f"{project_id}_{stage}_{key}"


def snapshot(entries: list[Entry]) -> dict[str, Entry]:
    """Index a list of entries by key (a *remote snapshot*)."""
    return {entry.key: entry for entry in entries}
