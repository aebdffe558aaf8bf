"""Storage backends for version records.

The ledger owns numbering, ordering and limits; a store only appends and
looks records up.  Stores raise ``VersionRecordError`` on I/O failure.

- ``InMemoryVersionStore``: list-backed, for tests and one-shot runs.
- ``JsonVersionStore``: one JSON file, rewritten atomically on append.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from envzip.errors import VersionRecordError
from envzip.file_handler import write_file
from envzip.versioning.models import VersionRecord

logger = logging.getLogger(__name__)


class VersionStore(Protocol):
    """Protocol that all version stores must satisfy."""

    def append(self, record: VersionRecord) -> None: ...  # pragma: no cover

    def get(self, version_id: str) -> VersionRecord | None: ...  # pragma: no cover

    def list_for_entity(
        self, entity_id: str
    ) -> list[VersionRecord]: ...  # pragma: no cover

    def list_for_project(
        self, project_id: str
    ) -> list[VersionRecord]: ...  # pragma: no cover


class InMemoryVersionStore:
    """List-backed version store."""

    def __init__(self) -> None:
        self._records: list[VersionRecord] = []
        self._lock = threading.Lock()

    def append(self, record: VersionRecord) -> None:
        with self._lock:
            self._records.append(record)

    def get(self, version_id: str) -> VersionRecord | None:
        with self._lock:
            for record in self._records:
                if record.id == version_id:
                    return record
        return None

    def list_for_entity(self, entity_id: str) -> list[VersionRecord]:
        with self._lock:
            return [r for r in self._records if r.entity_id == entity_id]

    def list_for_project(self, project_id: str) -> list[VersionRecord]:
        with self._lock:
            return [r for r in self._records if r.project_id == project_id]


class JsonVersionStore:
    """Version store persisted to a single JSON file.

    Args:
        path: JSON file path (typically ``.envzip/versions.json``).
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()

    def append(self, record: VersionRecord) -> None:
        with self._lock:
            records = self._load_raw()
            records.append(record.model_dump(mode="json"))
            try:
                write_file(
                    self._path,
                    json.dumps({"version": 1, "records": records}, indent=2),
                )
            except OSError as exc:
                raise VersionRecordError(
                    f"Could not write {self._path}: {exc}"
                ) from exc

    def get(self, version_id: str) -> VersionRecord | None:
        for record in self._load():
            if record.id == version_id:
                return record
        return None

    def list_for_entity(self, entity_id: str) -> list[VersionRecord]:
        return [r for r in self._load() if r.entity_id == entity_id]

    def list_for_project(self, project_id: str) -> list[VersionRecord]:
        return [r for r in self._load() if r.project_id == project_id]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _load_raw(self) -> list[dict]:
        if not self._path.exists():
            return []
        try:
            with open(self._path, encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            raise VersionRecordError(
                f"Could not read {self._path}: {exc}"
            ) from exc
        return list(data.get("records", []))

    def _load(self) -> list[VersionRecord]:
        try:
            return [
                VersionRecord.model_validate(raw)
                for raw in self._load_raw()
            ]
        except ValidationError as exc:
            raise VersionRecordError(
                f"Corrupt version record in {self._path}: {exc}"
            ) from exc
