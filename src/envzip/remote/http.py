"""HTTP adapters for the hosted EnvZip backend.

``HttpRemoteStore`` implements ``RemoteStore`` and ``HttpVersionStore``
implements ``VersionStore`` on top of a thread-local ``requests.Session``.

Documents on the wire use camelCase field names; ``tags`` and version
``changes`` are JSON-encoded strings because the backend only stores
scalar attributes.

Error mapping:
    connection errors, timeouts, 5xx -> RemoteUnavailableError
    404                              -> NotFoundError
    401, 403                         -> ConfigError
    other 4xx                        -> ValueError
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Mapping
from typing import Any

import requests

from envzip.config import Config
from envzip.errors import (
    ConfigError,
    NotFoundError,
    RemoteUnavailableError,
    VersionRecordError,
)
from envzip.models import Entry
from envzip.remote.base import (
    EventCallback,
    EventKind,
    RemoteEvent,
    Unsubscribe,
    document_id,
)
from envzip.versioning.models import VersionRecord

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = (10, 60)
DEFAULT_POLL_INTERVAL = 5.0

_FIELD_TO_WIRE = {
    "id": "id",
    "project_id": "projectId",
    "stage": "environment",
    "key": "key",
    "value": "value",
    "kind": "type",
    "description": "description",
    "tags": "tags",
    "created_at": "createdAt",
    "last_modified_at": "lastModifiedAt",
    "last_modified_by": "lastModifiedBy",
}
_WIRE_TO_FIELD = {v: k for k, v in _FIELD_TO_WIRE.items()}


def entry_to_document(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Convert entry fields to a wire document."""
    doc: dict[str, Any] = {}
    for name, value in fields.items():
        wire = _FIELD_TO_WIRE.get(name)
        if wire is None:
            continue
        if name == "tags":
            value = json.dumps(list(value or []))
        elif hasattr(value, "isoformat"):
            value = value.isoformat()
        elif hasattr(value, "value"):
            value = value.value
        doc[wire] = value
    return doc


def document_to_entry(doc: Mapping[str, Any]) -> Entry:
    """Convert a wire document to an ``Entry``."""
    data = {
        _WIRE_TO_FIELD[k]: v for k, v in doc.items() if k in _WIRE_TO_FIELD
    }
    tags = data.get("tags")
    if isinstance(tags, str):
        data["tags"] = json.loads(tags) if tags else []
    return Entry.model_validate(data)


class _HttpClient:
    """Thread-local session plus status-code to exception mapping."""

    def __init__(self, config: Config):
        self.config = config
        self.base_url = config.remote_endpoint.rstrip("/")
        self._thread_local = threading.local()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "X-EnvZip-Key": self.config.api_key,
                "X-EnvZip-Project": self.config.project_key,
                "Accept": "application/json",
            }
        )
        session.verify = not self.config.insecure
        return session

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body (or None)."""
        url = f"{self.base_url}{path}"
        try:
            response = self._get_session().request(
                method,
                url,
                params=params,
                json=payload,
                timeout=DEFAULT_TIMEOUT,
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise RemoteUnavailableError(
                f"Cannot reach {self.base_url}: {exc}"
            ) from exc

        status = response.status_code
        if status >= 500:
            raise RemoteUnavailableError(
                f"{method} {path} failed with HTTP {status}"
            )
        if status == 404:
            raise NotFoundError(f"{method} {path}: not found")
        if status in (401, 403):
            raise ConfigError(
                f"Access denied by {self.base_url} (HTTP {status}); "
                "check the API key and project key"
            )
        if status >= 400:
            raise ValueError(
                f"{method} {path} rejected (HTTP {status}): {response.text}"
            )
        if status == 204 or not response.content:
            return None
        return response.json()


class HttpRemoteStore(_HttpClient):
    """``RemoteStore`` backed by the EnvZip REST API.

    ``subscribe`` polls the project listing on a daemon thread and
    diffs it against the previous poll, since the REST API has no push
    channel.
    """

    def __init__(
        self, config: Config, poll_interval: float = DEFAULT_POLL_INTERVAL
    ):
        super().__init__(config)
        self.poll_interval = poll_interval

    def list(self, project_id: str, stage: str) -> list[Entry]:
        docs = self.request(
            "GET", f"/projects/{project_id}/stages/{stage}/variables"
        )
        entries = [document_to_entry(d) for d in docs or []]
        return sorted(entries, key=lambda e: e.key)

    def get(self, entity_id: str) -> Entry:
        return document_to_entry(
            self.request("GET", f"/variables/{entity_id}")
        )

    def create(self, fields: Mapping[str, Any]) -> Entry:
        doc = entry_to_document(fields)
        stage = getattr(fields["stage"], "value", fields["stage"])
        doc["id"] = document_id(fields["project_id"], stage, fields["key"])
        return document_to_entry(
            self.request("POST", "/variables", payload=doc)
        )

    def update(
        self, entity_id: str, partial: Mapping[str, Any]
    ) -> Entry:
        return document_to_entry(
            self.request(
                "PATCH",
                f"/variables/{entity_id}",
                payload=entry_to_document(partial),
            )
        )

    def delete(self, entity_id: str) -> None:
        self.request("DELETE", f"/variables/{entity_id}")

    def subscribe(
        self, project_id: str, callback: EventCallback
    ) -> Unsubscribe:
        stop = threading.Event()
        thread = threading.Thread(
            target=self._poll_loop,
            args=(project_id, callback, stop),
            name=f"envzip-poll-{project_id}",
            daemon=True,
        )
        thread.start()

        def _unsubscribe() -> None:
            stop.set()

        return _unsubscribe

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def _fetch_project(self, project_id: str) -> dict[str, Entry]:
        docs = self.request("GET", f"/projects/{project_id}/variables")
        return {e.id: e for e in (document_to_entry(d) for d in docs or [])}

    def _poll_loop(
        self,
        project_id: str,
        callback: EventCallback,
        stop: threading.Event,
    ) -> None:
        previous: dict[str, Entry] | None = None
        while not stop.is_set():
            try:
                current = self._fetch_project(project_id)
            except RemoteUnavailableError as exc:
                logger.warning("Remote poll failed: %s", exc)
                stop.wait(self.poll_interval)
                continue
            if previous is not None:
                for event in diff_snapshots(previous, current):
                    try:
                        callback(event)
                    except Exception:
                        logger.exception(
                            "Subscriber failed on %s event for %s",
                            event.kind.value,
                            event.entity.key,
                        )
            previous = current
            stop.wait(self.poll_interval)


def diff_snapshots(
    previous: Mapping[str, Entry], current: Mapping[str, Entry]
) -> list[RemoteEvent]:
    """Derive change events between two polls keyed by entry id."""
    events: list[RemoteEvent] = []
    for entity_id, entry in current.items():
        before = previous.get(entity_id)
        if before is None:
            events.append(RemoteEvent(kind=EventKind.CREATE, entity=entry))
        elif before != entry:
            events.append(RemoteEvent(kind=EventKind.UPDATE, entity=entry))
    for entity_id, entry in previous.items():
        if entity_id not in current:
            events.append(RemoteEvent(kind=EventKind.DELETE, entity=entry))
    return events


class HttpVersionStore(_HttpClient):
    """``VersionStore`` backed by the ``/versions`` collection."""

    def append(self, record: VersionRecord) -> None:
        doc = record.model_dump(mode="json")
        doc["changes"] = json.dumps(doc["changes"])
        try:
            self.request("POST", "/versions", payload=doc)
        except (RemoteUnavailableError, ValueError, ConfigError) as exc:
            raise VersionRecordError(
                f"Could not store version {record.id}: {exc}"
            ) from exc

    def get(self, version_id: str) -> VersionRecord | None:
        try:
            doc = self._call("GET", f"/versions/{version_id}")
        except NotFoundError:
            return None
        return self._to_record(doc)

    def list_for_entity(self, entity_id: str) -> list[VersionRecord]:
        docs = self._call("GET", "/versions", params={"entityId": entity_id})
        return [self._to_record(d) for d in docs or []]

    def list_for_project(self, project_id: str) -> list[VersionRecord]:
        docs = self._call(
            "GET", "/versions", params={"projectId": project_id}
        )
        return [self._to_record(d) for d in docs or []]

    def _call(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            return self.request(method, path, **kwargs)
        except (RemoteUnavailableError, ValueError, ConfigError) as exc:
            raise VersionRecordError(f"Version lookup failed: {exc}") from exc

    @staticmethod
    def _to_record(doc: Mapping[str, Any]) -> VersionRecord:
        data = dict(doc)
        if isinstance(data.get("changes"), str):
            data["changes"] = json.loads(data["changes"])
        return VersionRecord.model_validate(data)
