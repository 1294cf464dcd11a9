"""
Shared pytest fixtures for imgvault tests.

Uses real SQLite stores under tmp_path; failure injection goes through
small in-memory fakes.
"""

from typing import Optional

import pytest

from imgvault.api import Vault
from imgvault.errors import StorageFailure
from imgvault.kv_store import MemoryKeyValueStore, SqliteKeyValueStore
from imgvault.persistence import CollectionStore, SessionFlagStore


class FailingKeyValueStore(MemoryKeyValueStore):
    """In-memory backend that can be told to reject reads or writes."""

    def __init__(self):
        super().__init__()
        self.fail_set = False
        self.fail_get = False
        self.set_calls = 0

    def get(self, key: str) -> Optional[str]:
        if self.fail_get:
            raise StorageFailure("simulated read failure")
        return super().get(key)

    def set(self, key: str, value: str) -> None:
        self.set_calls += 1
        if self.fail_set:
            raise StorageFailure("simulated quota exceeded")
        super().set(key, value)


@pytest.fixture
def kv(tmp_path):
    """Durable SQLite key-value store in a temp directory."""
    store = SqliteKeyValueStore(tmp_path / "vault.db")
    yield store
    store.close()


@pytest.fixture
def collection_store(kv):
    return CollectionStore(kv)


@pytest.fixture
def vault(collection_store):
    """A loaded, empty vault backed by SQLite."""
    v = Vault(collection_store)
    v.load()
    return v


@pytest.fixture
def failing_kv():
    return FailingKeyValueStore()


@pytest.fixture
def failing_vault(failing_kv):
    """A loaded vault whose backend can be made to fail."""
    v = Vault(CollectionStore(failing_kv))
    v.load()
    return v


@pytest.fixture
def session():
    """Session flag store with process-lifetime scope."""
    return SessionFlagStore(MemoryKeyValueStore())


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    """Point the store at tmp_path and clear secret overrides."""
    monkeypatch.setenv("IMGVAULT_STORE_PATH", str(tmp_path))
    monkeypatch.delenv("IMGVAULT_SECRET", raising=False)
    return tmp_path
