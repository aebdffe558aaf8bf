"""In-process remote store.

Backs the test-suite and local experiments.  Ids follow the
``<project>_<stage>_<key>`` convention and every mutation is announced
to subscribers of the entry's project.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

from envzip.errors import NotFoundError
from envzip.models import Entry
from envzip.remote.base import (
    EventCallback,
    EventKind,
    RemoteEvent,
    Unsubscribe,
    document_id,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryRemoteStore:
    """Dictionary-backed ``RemoteStore``.

    Args:
        clock: Optional callable returning the current time; defaults to
            UTC now.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or _utcnow
        self._entries: dict[str, Entry] = {}
        self._subscribers: dict[str, list[EventCallback]] = defaultdict(
            list
        )
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # RemoteStore protocol
    # ------------------------------------------------------------------

    def list(self, project_id: str, stage: str) -> list[Entry]:
        with self._lock:
            entries = [
                e
                for e in self._entries.values()
                if e.project_id == project_id and e.stage.value == stage
            ]
        return sorted(entries, key=lambda e: e.key)

    def get(self, entity_id: str) -> Entry:
        with self._lock:
            entry = self._entries.get(entity_id)
        if entry is None:
            raise NotFoundError(f"Entry '{entity_id}' not found")
        return entry

    def create(self, fields: Mapping[str, Any]) -> Entry:
        now = self._clock()
        data = dict(fields)
        stage = getattr(data.get("stage"), "value", data.get("stage"))
        entity_id = document_id(data["project_id"], stage, data["key"])
        data.update(
            id=entity_id, created_at=now, last_modified_at=now
        )
        entry = Entry.model_validate(data)
        with self._lock:
            if entity_id in self._entries:
                raise ValueError(
                    f"Entry '{entry.key}' already exists in "
                    f"{entry.project_id}/{entry.stage.value}"
                )
            self._entries[entity_id] = entry
        self._notify(EventKind.CREATE, entry)
        return entry

    def update(
        self, entity_id: str, partial: Mapping[str, Any]
    ) -> Entry:
        with self._lock:
            current = self._entries.get(entity_id)
            if current is None:
                raise NotFoundError(f"Entry '{entity_id}' not found")
            if "key" in partial and partial["key"] != current.key:
                raise ValueError(
                    "Entry keys are immutable; delete and re-create to rename"
                )
            data = current.model_dump()
            data.update(partial)
            data["id"] = current.id
            data["created_at"] = current.created_at
            data["last_modified_at"] = self._clock()
            entry = Entry.model_validate(data)
            self._entries[entity_id] = entry
        self._notify(EventKind.UPDATE, entry)
        return entry

    def delete(self, entity_id: str) -> None:
        with self._lock:
            entry = self._entries.pop(entity_id, None)
        if entry is None:
            raise NotFoundError(f"Entry '{entity_id}' not found")
        self._notify(EventKind.DELETE, entry)

    def subscribe(
        self, project_id: str, callback: EventCallback
    ) -> Unsubscribe:
        with self._lock:
            self._subscribers[project_id].append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(project_id, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _notify(self, kind: EventKind, entry: Entry) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(entry.project_id, []))
        event = RemoteEvent(kind=kind, entity=entry)
        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Subscriber failed on %s event for %s",
                    kind.value,
                    entry.key,
                )
