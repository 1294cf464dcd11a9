"""
Persistence surfaces built on key-value backends.

- CollectionStore: the whole vault collection as one JSON snapshot
- SessionFlagStore: the authentication flag for the current session

The two are independent: the collection outlives sessions, and clearing
the session flag never touches the collection.
"""

import json
import logging
from typing import Iterable

from .errors import CorruptSnapshot
from .protocol import KeyValueStoreProtocol
from .types import ImageRecord

logger = logging.getLogger(__name__)

DEFAULT_COLLECTION_KEY = "vault_images"
DEFAULT_SESSION_KEY = "vault_authenticated"


def serialize_snapshot(records: Iterable[ImageRecord]) -> str:
    """Serialize records to the snapshot format.

    Output is deterministic for a given sequence, so a load followed by a
    save rewrites identical text.
    """
    return json.dumps([r.to_dict() for r in records], ensure_ascii=False)


def deserialize_snapshot(text: str) -> list[ImageRecord]:
    """Parse snapshot text. Raises CorruptSnapshot on anything unparsable."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise CorruptSnapshot(f"Snapshot is not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise CorruptSnapshot(
            f"Snapshot must be a list of records, got {type(data).__name__}"
        )
    records = []
    for i, entry in enumerate(data):
        if not isinstance(entry, dict):
            raise CorruptSnapshot(f"Snapshot entry {i} is not an object")
        try:
            records.append(ImageRecord.from_dict(entry))
        except (KeyError, TypeError, ValueError) as e:
            raise CorruptSnapshot(f"Snapshot entry {i} is malformed: {e}") from e
    return records


class CollectionStore:
    """
    Load and save the full collection as a single unit.

    There is no per-record API: save() always replaces the previous
    snapshot in one write.
    """

    def __init__(self, kv: KeyValueStoreProtocol, key: str = DEFAULT_COLLECTION_KEY):
        self._kv = kv
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    def load(self) -> list[ImageRecord]:
        """
        Read the stored collection.

        Returns:
            Records in stored order; empty list if nothing was saved yet

        Raises:
            CorruptSnapshot: stored text cannot be parsed
            StorageFailure: the backend could not be read
        """
        text = self._kv.get(self._key)
        if text is None:
            return []
        return deserialize_snapshot(text)

    def save(self, records: Iterable[ImageRecord]) -> None:
        """
        Replace the stored collection.

        Raises:
            StorageFailure: the backend rejected the write
        """
        self._kv.set(self._key, serialize_snapshot(records))

    def close(self) -> None:
        self._kv.close()


class SessionFlagStore:
    """Boolean authentication flag scoped to the current session."""

    def __init__(self, kv: KeyValueStoreProtocol, key: str = DEFAULT_SESSION_KEY):
        self._kv = kv
        self._key = key

    def set_authenticated(self) -> None:
        self._kv.set(self._key, "true")

    def is_authenticated(self) -> bool:
        return self._kv.get(self._key) == "true"

    def clear_authenticated(self) -> None:
        self._kv.delete(self._key)

    def close(self) -> None:
        self._kv.close()
