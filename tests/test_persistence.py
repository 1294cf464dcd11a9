"""
Tests for key-value backends and the persistence surfaces built on them.

Uses real SQLite in tmp_path.
"""

import json
import sqlite3

import pytest

from imgvault.errors import CorruptSnapshot, StorageFailure
from imgvault.kv_store import MemoryKeyValueStore, SqliteKeyValueStore
from imgvault.persistence import (
    DEFAULT_COLLECTION_KEY,
    CollectionStore,
    SessionFlagStore,
)
from imgvault.protocol import KeyValueStoreProtocol
from imgvault.types import ImageRecord


def _rec(id, *keywords, name=""):
    return ImageRecord(
        id=id, content=f"data:image/png;base64,{id}", display_name=name,
        keywords=tuple(keywords), created_at="2026-01-01T00:00:00",
    )


class TestSqliteKeyValueStore:

    def test_satisfies_protocol(self, kv):
        assert isinstance(kv, KeyValueStoreProtocol)
        assert isinstance(MemoryKeyValueStore(), KeyValueStoreProtocol)

    def test_get_missing_returns_none(self, kv):
        assert kv.get("nope") is None

    def test_set_replaces(self, kv):
        kv.set("k", "one")
        kv.set("k", "two")
        assert kv.get("k") == "two"

    def test_delete(self, kv):
        kv.set("k", "v")
        assert kv.delete("k") is True
        assert kv.get("k") is None
        assert kv.delete("k") is False

    def test_survives_reopen(self, tmp_path):
        db = tmp_path / "vault.db"
        with SqliteKeyValueStore(db) as first:
            first.set("k", "durable")
        with SqliteKeyValueStore(db) as second:
            assert second.get("k") == "durable"

    def test_tables_are_independent(self, tmp_path):
        db = tmp_path / "vault.db"
        local = SqliteKeyValueStore(db, table="local_storage")
        session = SqliteKeyValueStore(db, table="session_storage")
        local.set("k", "local")
        assert session.get("k") is None
        session.delete("k")
        assert local.get("k") == "local"
        local.close()
        session.close()

    def test_invalid_table_name_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            SqliteKeyValueStore(tmp_path / "vault.db", table="x; DROP TABLE y")

    def test_unopenable_path_is_storage_failure(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(StorageFailure):
            SqliteKeyValueStore(blocker / "vault.db")

    def test_sqlite_error_on_write_is_storage_failure(self, kv):
        kv._conn.execute("DROP TABLE local_storage")
        with pytest.raises(StorageFailure):
            kv.set("k", "v")

    def test_storage_failure_keeps_cause(self, kv):
        kv._conn.execute("DROP TABLE local_storage")
        with pytest.raises(StorageFailure) as exc_info:
            kv.get("k")
        assert isinstance(exc_info.value.__cause__, sqlite3.Error)


class TestCollectionStore:

    def test_load_empty_when_nothing_saved(self, collection_store):
        assert collection_store.load() == []

    def test_save_then_load(self, collection_store):
        records = [_rec("b", "dog", name="b.png"), _rec("a", "cat")]
        collection_store.save(records)
        assert collection_store.load() == records

    def test_snapshot_is_single_json_array(self, kv, collection_store):
        collection_store.save([_rec("a", "cat")])
        data = json.loads(kv.get(DEFAULT_COLLECTION_KEY))
        assert isinstance(data, list)
        assert data[0]["id"] == "a"
        assert data[0]["keywords"] == ["cat"]

    def test_save_load_save_is_byte_identical(self, kv, collection_store):
        collection_store.save([_rec("b", "dog", "pet"), _rec("a", "cat", name="ünï")])
        before = kv.get(DEFAULT_COLLECTION_KEY)
        collection_store.save(collection_store.load())
        assert kv.get(DEFAULT_COLLECTION_KEY) == before

    def test_save_replaces_previous_snapshot(self, collection_store):
        collection_store.save([_rec("a", "cat"), _rec("b", "dog")])
        collection_store.save([_rec("c", "cow")])
        assert [r.id for r in collection_store.load()] == ["c"]

    def test_load_deduplicates_stored_keywords(self, kv, collection_store):
        kv.set(DEFAULT_COLLECTION_KEY, json.dumps([{
            "id": "a", "src": "x", "name": "",
            "keywords": ["cat", "Cat", "cat"], "uploadedAt": "2026-01-01T00:00:00",
        }]))
        assert collection_store.load()[0].keywords == ("cat",)

    def test_custom_key(self, kv):
        store = CollectionStore(kv, key="other")
        store.save([_rec("a", "cat")])
        assert kv.get("other") is not None
        assert kv.get(DEFAULT_COLLECTION_KEY) is None

    @pytest.mark.parametrize("text", [
        "not json",
        '{"id": "a"}',
        '["just a string"]',
        '[{"id": "a"}]',
        '[{"id": "a", "src": "x", "keywords": [], "uploadedAt": "never"}]',
    ])
    def test_unparsable_snapshot_raises_corrupt(self, kv, collection_store, text):
        kv.set(DEFAULT_COLLECTION_KEY, text)
        with pytest.raises(CorruptSnapshot):
            collection_store.load()

    def test_corrupt_snapshot_is_storage_failure(self):
        assert issubclass(CorruptSnapshot, StorageFailure)


class TestSessionFlagStore:

    def test_starts_unauthenticated(self, session):
        assert session.is_authenticated() is False

    def test_set_and_clear(self, session):
        session.set_authenticated()
        assert session.is_authenticated() is True
        session.clear_authenticated()
        assert session.is_authenticated() is False

    def test_clear_when_not_set(self, session):
        session.clear_authenticated()
        assert session.is_authenticated() is False

    def test_independent_of_collection(self, kv):
        """Clearing the session never touches the collection."""
        collection = CollectionStore(kv)
        flags = SessionFlagStore(kv)
        collection.save([_rec("a", "cat")])
        flags.set_authenticated()
        flags.clear_authenticated()
        assert [r.id for r in collection.load()] == ["a"]

    def test_session_ends_with_process_scope(self):
        kv = MemoryKeyValueStore()
        flags = SessionFlagStore(kv)
        flags.set_authenticated()
        flags.close()
        assert flags.is_authenticated() is False
