"""Tests for the in-memory and JSON file connection stores."""

import json

import pytest

from keysmith.exceptions import ConfigurationError, ConnectionNotFoundError
from keysmith.models.domain import ConnectionRecord
from keysmith.persistence import InMemoryConnectionStore, JsonFileConnectionStore


class TestInMemoryConnectionStore:
    """Tests for InMemoryConnectionStore."""

    def test_find_returns_copy(self, memory_store):
        """Should not let callers mutate stored records."""
        record = memory_store.find("root", "PROJECT_EXT_1")
        record.parameters["awsAccessKeyId"] = "changed"

        assert memory_store.find("root", "PROJECT_EXT_1").access_key_id != "changed"

    def test_find_missing(self, memory_store):
        """Should return None for unknown ids and projects."""
        assert memory_store.find("root", "nope") is None
        assert memory_store.find("other", "PROJECT_EXT_1") is None

    def test_update_missing_raises(self, memory_store):
        """Should raise ConnectionNotFoundError."""
        with pytest.raises(ConnectionNotFoundError) as exc_info:
            memory_store.update("root", "nope", {})

        assert exc_info.value.project_id == "root"

    def test_update_visible_before_persist(self, connection_record):
        """Should keep the durable view until flushed."""
        store = InMemoryConnectionStore(persist_immediately=False)
        store.add(connection_record)

        store.update("root", "PROJECT_EXT_1", {"awsAccessKeyId": "AKIANEW"})
        store.schedule_persist("root", reason="test")

        assert store.find("root", "PROJECT_EXT_1").access_key_id == "AKIANEW"
        assert store.read_persisted("root", "PROJECT_EXT_1").access_key_id != "AKIANEW"

        store.flush()

        assert store.read_persisted("root", "PROJECT_EXT_1").access_key_id == "AKIANEW"

    def test_persist_immediately(self, memory_store):
        """Should make changes durable on schedule_persist."""
        memory_store.update("root", "PROJECT_EXT_1", {"awsAccessKeyId": "AKIANEW"})
        memory_store.schedule_persist("root", reason="test")

        assert memory_store.read_persisted("root", "PROJECT_EXT_1").access_key_id == "AKIANEW"
        assert memory_store.persist_requests == [("root", "test")]

    def test_unpersisted_add(self, connection_record):
        """Should allow records that were never made durable."""
        store = InMemoryConnectionStore()
        store.add(connection_record, persisted=False)

        assert store.find("root", "PROJECT_EXT_1") is not None
        assert store.read_persisted("root", "PROJECT_EXT_1") is None

    def test_remove(self, memory_store):
        """Should delete from both views."""
        assert memory_store.remove("root", "PROJECT_EXT_1") is True
        assert memory_store.find("root", "PROJECT_EXT_1") is None
        assert memory_store.read_persisted("root", "PROJECT_EXT_1") is None
        assert memory_store.remove("root", "PROJECT_EXT_1") is False


class TestJsonFileConnectionStore:
    """Tests for JsonFileConnectionStore."""

    @pytest.fixture
    def store(self, temp_store_dir, connection_record):
        with JsonFileConnectionStore(temp_store_dir) as store:
            store.add(connection_record)
            yield store

    def test_add_writes_project_file(self, store, temp_store_dir):
        """Should write one JSON file per project."""
        data = json.loads((temp_store_dir / "root.json").read_text())

        assert data["project_id"] == "root"
        assert data["connections"]["PROJECT_EXT_1"]["parameters"]["awsRegionName"] == "eu-west-1"

    def test_reload_from_disk(self, store, temp_store_dir):
        """Should read records written by another instance."""
        with JsonFileConnectionStore(temp_store_dir) as other:
            record = other.find("root", "PROJECT_EXT_1")

        assert record.provider_type == "AWS"
        assert record.access_key_id == store.find("root", "PROJECT_EXT_1").access_key_id

    def test_update_not_durable_until_persisted(self, store):
        """Should only write on schedule_persist."""
        store.update("root", "PROJECT_EXT_1", {"awsAccessKeyId": "AKIANEW"})

        assert store.read_persisted("root", "PROJECT_EXT_1").access_key_id != "AKIANEW"

        store.schedule_persist("root", reason="rotate")
        store.wait_for_writes(timeout=5)

        assert store.read_persisted("root", "PROJECT_EXT_1").access_key_id == "AKIANEW"

    def test_no_temp_file_left(self, store, temp_store_dir):
        """Should replace the project file atomically."""
        store.schedule_persist("root", reason="test")
        store.wait_for_writes(timeout=5)

        assert not (temp_store_dir / "root.tmp").exists()

    def test_update_missing_raises(self, store):
        """Should raise ConnectionNotFoundError."""
        with pytest.raises(ConnectionNotFoundError):
            store.update("root", "nope", {})

    def test_list_connections(self, store):
        """Should list every record in the project."""
        store.add(ConnectionRecord(id="PROJECT_EXT_2", project_id="root", parameters={}))

        assert sorted(r.id for r in store.list_connections("root")) == ["PROJECT_EXT_1", "PROJECT_EXT_2"]
        assert store.list_connections("empty") == []

    def test_corrupt_file(self, temp_store_dir):
        """Should raise ConfigurationError for invalid JSON."""
        (temp_store_dir / "root.json").write_text("{not json")

        with JsonFileConnectionStore(temp_store_dir) as store:
            with pytest.raises(ConfigurationError):
                store.find("root", "PROJECT_EXT_1")

    @pytest.mark.parametrize("project_id", ["../outside", "a/b", "a\\b", "..", ""])
    def test_rejects_project_ids_escaping_directory(self, store, temp_store_dir, project_id):
        """Should refuse project ids that are not a plain file name."""
        with pytest.raises(ConfigurationError, match="Invalid project id"):
            store.find(project_id, "PROJECT_EXT_1")
        with pytest.raises(ConfigurationError):
            store.add(ConnectionRecord(id="PROJECT_EXT_1", project_id=project_id))

        assert not (temp_store_dir.parent / "outside.json").exists()

    def test_creates_directory(self, tmp_path):

        """Should create a missing store directory."""
        target = tmp_path / "nested" / "connections"

        with JsonFileConnectionStore(target):
            pass

        assert target.is_dir()
