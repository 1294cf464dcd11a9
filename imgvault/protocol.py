"""
Protocol definitions for the vault and its storage backends.

Defines interface contracts at two levels:
- VaultProtocol: the public API consumed by the CLI or any other front end
- KeyValueStoreProtocol: internal storage backends
  (SQLite for durable data, in-memory for the session scope)
"""

from typing import Any, Iterable, Optional, Protocol, runtime_checkable

from .types import ImageRecord


@runtime_checkable
class KeyValueStoreProtocol(Protocol):
    """
    A flat string-to-string store.

    Implemented by:
    - SqliteKeyValueStore (durable)
    - MemoryKeyValueStore (process lifetime)
    """

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> bool: ...

    def close(self) -> None: ...


@runtime_checkable
class VaultProtocol(Protocol):
    """
    The operations a front end may call on a vault.

    Implemented by:
    - Vault (in-memory collection synced to a CollectionStore)
    """

    # -- Write operations --

    def insert(
        self,
        content: str,
        display_name: str = "",
        keywords: Iterable[str] = (),
    ) -> ImageRecord: ...

    def remove(self, id: str) -> bool: ...

    def import_data(self, data: dict, *, mode: str = "merge") -> dict[str, Any]: ...

    # -- Query operations --

    def all(self) -> list[ImageRecord]: ...

    def search(self, keywords: Iterable[str]) -> list[ImageRecord]: ...

    def get(self, id: str) -> Optional[ImageRecord]: ...

    def count(self) -> int: ...

    def export_data(self) -> dict[str, Any]: ...
