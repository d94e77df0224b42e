"""Tests for state stores."""

import json
import threading
import pytest
from stackforge.ingest.models import ResourceRef
from stackforge.state.models import STATE_FORMAT_VERSION, StateEntry
from stackforge.state.store import FileStateStore, MemoryStateStore
from stackforge.utils.errors import StateStoreError


def _entry(key, remote_id="r-1", outputs=None):
    return StateEntry(
        ref=ResourceRef.parse(key),
        remote_id=remote_id,
        attribute_fingerprint="sha256:abc",
        attributes={"name": key},
        outputs=outputs or {"id": remote_id},
        dependencies=[ResourceRef.parse("vpc.main")],
    )


@pytest.fixture(params=["memory", "file"])
def store(request, tmp_path):
    """Each test runs against both implementations."""
    if request.param == "memory":
        return MemoryStateStore()
    return FileStateStore(str(tmp_path / "state" / "state.json"))


class TestStateStoreContract:
    """Behaviour shared by every state store."""

    def test_empty(self, store):
        assert store.load() == []
        assert store.get(ResourceRef.parse("vpc.main")) is None

    def test_upsert_and_get(self, store):
        store.upsert(_entry("subnet.a"))
        entry = store.get(ResourceRef.parse("subnet.a"))

        assert entry.remote_id == "r-1"
        assert entry.dependencies == [ResourceRef.parse("vpc.main")]

    def test_upsert_replaces(self, store):
        store.upsert(_entry("subnet.a", "r-1"))
        store.upsert(_entry("subnet.a", "r-2"))

        assert [e.remote_id for e in store.load()] == ["r-2"]

    def test_remove(self, store):
        store.upsert(_entry("subnet.a"))
        store.remove(ResourceRef.parse("subnet.a"))
        store.remove(ResourceRef.parse("subnet.a"))
        assert store.load() == []

    def test_returned_entries_are_copies(self, store):
        store.upsert(_entry("subnet.a"))
        store.get(ResourceRef.parse("subnet.a")).outputs["id"] = "tampered"
        assert store.get(ResourceRef.parse("subnet.a")).outputs["id"] == "r-1"

    def test_concurrent_upserts(self, store):
        threads = [
            threading.Thread(target=store.upsert, args=(_entry(f"s3_bucket.b{i}", f"r-{i}"),))
            for i in range(16)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert len(store.load()) == 16


class TestFileStateStore:
    """Test the on-disk document."""

    def test_persists_across_instances(self, tmp_path):
        path = str(tmp_path / "state.json")
        FileStateStore(path).upsert(_entry("subnet.a"))

        assert FileStateStore(path).get(ResourceRef.parse("subnet.a")).remote_id == "r-1"

    def test_document_layout(self, tmp_path):
        path = tmp_path / "state.json"
        store = FileStateStore(str(path))
        store.upsert(_entry("subnet.b"))
        store.upsert(_entry("subnet.a"))

        document = json.loads(path.read_text(encoding="utf-8"))
        assert document["version"] == STATE_FORMAT_VERSION
        assert document["serial"] == 2
        assert [r["ref"]["name"] for r in document["resources"]] == ["a", "b"]
        assert not (tmp_path / "state.json.tmp").exists()

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(StateStoreError, match="not valid JSON"):
            FileStateStore(str(path)).load()

    def test_invalid_structure(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"resources": [{"ref": "oops"}]}), encoding="utf-8")

        with pytest.raises(StateStoreError, match="invalid structure"):
            FileStateStore(str(path)).load()

    def test_newer_format_rejected(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"version": STATE_FORMAT_VERSION + 1, "resources": []}), encoding="utf-8")

        with pytest.raises(StateStoreError, match="format version"):
            FileStateStore(str(path)).load()

    def test_unwritable_location(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        store = FileStateStore(str(blocker / "state.json"))

        with pytest.raises(StateStoreError):
            store.upsert(_entry("subnet.a"))
