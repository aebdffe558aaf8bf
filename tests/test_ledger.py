"""Tests for envzip.versioning.ledger.VersionLedger and the version stores."""

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from envzip.errors import VersionRecordError
from envzip.models import Entry, EntryKind, Stage
from envzip.versioning.ledger import VersionLedger, calculate_changes
from envzip.versioning.models import ChangeType
from envzip.versioning.store import InMemoryVersionStore, JsonVersionStore

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _entry(key="A", value="1", stage=Stage.DEVELOPMENT, **extra):
    return Entry(
        id=f"proj_{stage.value}_{key}",
        project_id="proj",
        stage=stage,
        key=key,
        value=value,
        **extra,
    )


def _ids():
    counter = iter(range(1, 1000))
    return lambda: f"v{next(counter)}"


# ---------------------------------------------------------------------------
# calculate_changes
# ---------------------------------------------------------------------------


class TestCalculateChanges:
    def test_only_differing_fields(self):
        old = _entry(value="1")
        new = _entry(value="2", description="now documented")
        changes = calculate_changes(old, new)
        assert [c.field for c in changes] == ["value", "description"]
        assert all(c.change_type == ChangeType.MODIFIED for c in changes)
        assert changes[0].old_value == "1"
        assert changes[0].new_value == "2"

    def test_untracked_fields_ignored(self):
        old = _entry()
        new = old.model_copy(update={"tags": ["x"], "last_modified_by": "bob"})
        assert calculate_changes(old, new) == []

    def test_kind_recorded_as_string(self):
        old = _entry()
        new = old.model_copy(update={"kind": EntryKind.SECRET})
        (change,) = calculate_changes(old, new)
        assert change.old_value == "string"
        assert change.new_value == "secret"


# ---------------------------------------------------------------------------
# Recording
# ---------------------------------------------------------------------------


class TestRecording:
    def test_lifecycle_numbers_are_sequential(self, ledger):
        entry = _entry()
        v1 = ledger.record_create(entry, "alice")
        v2 = ledger.record_update(
            entry, entry.model_copy(update={"value": "2"}), "bob"
        )
        v3 = ledger.record_delete(
            entry.model_copy(update={"value": "2"}), "carol"
        )

        assert [v1.version_number, v2.version_number, v3.version_number] == [
            1,
            2,
            3,
        ]
        assert v1.change_type == ChangeType.CREATED
        assert v2.change_type == ChangeType.MODIFIED
        assert v3.change_type == ChangeType.DELETED

    def test_create_carries_full_field_set(self, ledger):
        record = ledger.record_create(_entry(description="d"), "alice")
        change = record.change_for("created")
        assert change.old_value is None
        assert change.new_value == {
            "key": "A",
            "value": "1",
            "description": "d",
            "kind": "string",
            "stage": "development",
        }

    def test_delete_carries_final_state(self, ledger):
        record = ledger.record_delete(_entry(value="last"), "alice")
        change = record.change_for("deleted")
        assert change.new_value is None
        assert change.old_value["value"] == "last"

    def test_noop_update_records_nothing(self, ledger, version_store):
        entry = _entry()
        assert ledger.record_update(entry, entry, "alice") is None
        assert version_store.list_for_entity(entry.id) == []

    def test_recreated_key_continues_sequence(self, ledger):
        entry = _entry()
        ledger.record_create(entry, "alice")
        ledger.record_delete(entry, "alice")

        again = ledger.record_create(
            entry.model_copy(update={"value": "9"}), "bob"
        )

        assert again.version_number == 3
        assert again.change_type == ChangeType.CREATED
        assert [r.version_number for r in ledger.history(entry.id)] == [3, 2, 1]

    def test_numbers_are_per_entity(self, ledger):
        ledger.record_create(_entry("A"), "alice")
        record = ledger.record_create(_entry("B"), "alice")
        assert record.version_number == 1

    def test_number_follows_max_after_gap(self, ledger, version_store):
        entry = _entry()
        first = ledger.record_create(entry, "alice")
        version_store.append(first.model_copy(update={"id": "x", "version_number": 7}))
        record = ledger.record_update(
            entry, entry.model_copy(update={"value": "2"}), "alice"
        )
        assert record.version_number == 8

    def test_record_metadata(self, version_store, clock):
        ledger = VersionLedger(version_store, clock=clock, id_factory=_ids())
        record = ledger.record_create(_entry(), "alice", message="hello")
        assert record.id == "v1"
        assert record.author == "alice"
        assert record.message == "hello"
        assert record.stage == "development"
        assert record.created_at.tzinfo is not None

    def test_store_failure_wrapped(self):
        store = MagicMock()
        store.list_for_entity.return_value = []
        store.append.side_effect = OSError("disk full")
        ledger = VersionLedger(store)
        with pytest.raises(VersionRecordError, match="disk full"):
            ledger.record_create(_entry(), "alice")

    def test_version_record_error_passes_through(self):
        store = MagicMock()
        store.list_for_entity.side_effect = VersionRecordError("offline")
        with pytest.raises(VersionRecordError, match="offline"):
            VersionLedger(store).record_create(_entry(), "alice")


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class TestQueries:
    def _populate(self, ledger):
        a = _entry("A")
        ledger.record_create(a, "alice")
        ledger.record_update(a, a.model_copy(update={"value": "2"}), "alice")
        ledger.record_create(_entry("B", stage=Stage.PRODUCTION), "bob")
        ledger.record_delete(_entry("C"), "bob")

    def test_history_newest_first(self, ledger):
        self._populate(ledger)
        numbers = [r.version_number for r in ledger.history("proj_development_A")]
        assert numbers == [2, 1]

    def test_history_of_unknown_entity_is_empty(self, ledger):
        assert ledger.history("nope") == []

    def test_history_for_container_most_recent_first(self, ledger):
        self._populate(ledger)
        records = ledger.history_for_container("proj")
        assert len(records) == 4
        times = [r.created_at for r in records]
        assert times == sorted(times, reverse=True)
        assert records[0].entity_id == "proj_development_C"

    def test_history_for_container_limit(self, ledger):
        self._populate(ledger)
        assert len(ledger.history_for_container("proj", limit=2)) == 2
        assert ledger.history_for_container("proj", limit=0) == []

    def test_history_for_stage(self, ledger):
        self._populate(ledger)
        records = ledger.history_for_stage("proj", "production")
        assert [r.entity_id for r in records] == ["proj_production_B"]

    def test_get_version(self, version_store, clock):
        ledger = VersionLedger(version_store, clock=clock, id_factory=_ids())
        ledger.record_create(_entry(), "alice")
        assert ledger.get_version("v1").version_number == 1
        assert ledger.get_version("v99") is None

    def test_statistics(self, ledger):
        self._populate(ledger)
        stats = ledger.statistics("proj")
        assert stats["total_versions"] == 4
        assert stats["by_stage"] == {"development": 3, "production": 1}
        assert stats["by_change_type"] == {
            "created": 2,
            "modified": 1,
            "deleted": 1,
        }
        assert len(stats["recent_activity"]) == 4

    def test_statistics_empty(self, ledger):
        stats = ledger.statistics("proj")
        assert stats["total_versions"] == 0
        assert stats["recent_activity"] == []


# ---------------------------------------------------------------------------
# JsonVersionStore
# ---------------------------------------------------------------------------


class TestJsonVersionStore:
    def test_persists_across_instances(self, tmp_path, clock):
        path = tmp_path / "versions.json"
        ledger = VersionLedger(JsonVersionStore(path), clock=clock)
        ledger.record_create(_entry(), "alice")

        reopened = JsonVersionStore(path)
        (record,) = reopened.list_for_entity("proj_development_A")
        assert record.version_number == 1
        assert json.loads(path.read_text())["version"] == 1

    def test_missing_file_is_empty(self, tmp_path):
        store = JsonVersionStore(tmp_path / "versions.json")
        assert store.list_for_project("proj") == []
        assert store.get("x") is None

    def test_corrupt_file_raises(self, tmp_path):
        path = tmp_path / "versions.json"
        path.write_text("{not json")
        with pytest.raises(VersionRecordError):
            JsonVersionStore(path).list_for_project("proj")

    def test_invalid_record_raises(self, tmp_path):
        path = tmp_path / "versions.json"
        path.write_text(json.dumps({"version": 1, "records": [{"id": "x"}]}))
        with pytest.raises(VersionRecordError, match="Corrupt"):
            JsonVersionStore(path).get("x")


class TestInMemoryVersionStore:
    def test_filters(self):
        store = InMemoryVersionStore()
        ledger = VersionLedger(
            store, clock=lambda: datetime(2026, 1, 1, tzinfo=timezone.utc)
        )
        ledger.record_create(_entry("A"), "alice")
        assert len(store.list_for_project("proj")) == 1
        assert store.list_for_project("other") == []
