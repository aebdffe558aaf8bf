"""Tests for envzip.remote.memory.InMemoryRemoteStore."""

import pytest

from envzip.errors import NotFoundError
from envzip.models import Stage
from envzip.remote.base import EventKind, document_id, snapshot
from envzip.remote.memory import InMemoryRemoteStore


def _fields(key="A", value="1", stage=Stage.DEVELOPMENT, project="proj"):
    return {"project_id": project, "stage": stage, "key": key, "value": value}


class TestCrud:
    def test_create_assigns_id_and_timestamps(self, remote):
        entry = remote.create(_fields())
        assert entry.id == "proj_development_A"
        assert entry.created_at == entry.last_modified_at
        assert entry.created_at is not None

    def test_create_duplicate_rejected(self, remote):
        remote.create(_fields())
        with pytest.raises(ValueError, match="already exists"):
            remote.create(_fields(value="2"))

    def test_list_filters_project_and_stage(self, remote):
        remote.create(_fields(key="B"))
        remote.create(_fields(key="A"))
        remote.create(_fields(key="C", stage=Stage.PRODUCTION))
        remote.create(_fields(key="D", project="other"))

        keys = [e.key for e in remote.list("proj", "development")]
        assert keys == ["A", "B"]

    def test_update_refreshes_timestamp(self, remote):
        created = remote.create(_fields())
        updated = remote.update(created.id, {"value": "2"})
        assert updated.value == "2"
        assert updated.created_at == created.created_at
        assert updated.last_modified_at > created.last_modified_at

    def test_update_rejects_key_change(self, remote):
        created = remote.create(_fields())
        with pytest.raises(ValueError, match="immutable"):
            remote.update(created.id, {"key": "B"})

    def test_get_missing_raises(self, remote):
        with pytest.raises(NotFoundError):
            remote.get("nope")

    def test_update_missing_raises(self, remote):
        with pytest.raises(NotFoundError):
            remote.update("nope", {"value": "x"})

    def test_delete(self, remote):
        created = remote.create(_fields())
        remote.delete(created.id)
        with pytest.raises(NotFoundError):
            remote.get(created.id)
        with pytest.raises(NotFoundError):
            remote.delete(created.id)


class TestSubscribe:
    def test_events_delivered_in_order(self, remote):
        events = []
        remote.subscribe("proj", events.append)

        entry = remote.create(_fields())
        remote.update(entry.id, {"value": "2"})
        remote.delete(entry.id)

        assert [e.kind for e in events] == [
            EventKind.CREATE,
            EventKind.UPDATE,
            EventKind.DELETE,
        ]
        assert events[1].entity.value == "2"

    def test_other_project_not_delivered(self, remote):
        events = []
        remote.subscribe("other", events.append)
        remote.create(_fields())
        assert events == []

    def test_unsubscribe(self, remote):
        events = []
        unsubscribe = remote.subscribe("proj", events.append)
        unsubscribe()
        remote.create(_fields())
        assert events == []

    def test_failing_callback_does_not_break_write(self):
        store = InMemoryRemoteStore()

        def _boom(event):
            raise RuntimeError("subscriber bug")

        store.subscribe("proj", _boom)
        entry = store.create(_fields())
        assert store.get(entry.id).value == "1"


class TestHelpers:
    def test_document_id(self):
        assert document_id("p", "staging", "KEY") == "p_staging_KEY"

    def test_snapshot_indexes_by_key(self, remote):
        remote.create(_fields(key="A"))
        remote.create(_fields(key="B", value="2"))
        snap = snapshot(remote.list("proj", "development"))
        assert set(snap) == {"A", "B"}
        assert snap["B"].value == "2"
