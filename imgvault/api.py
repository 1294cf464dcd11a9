"""
Core API for the image vault.

The Vault owns the ordered collection of image records. Every mutation
rewrites the whole collection to the CollectionStore, so the durable
snapshot always matches memory after a successful call.

Usage:
    config = load_or_create_config(get_store_path())
    gate = open_gate(config)
    gate.authenticate(password)

    vault = open_vault(config)
    vault.load()
    record = vault.insert(data_uri, "cat.png", ["cat", "pet"])
    vault.search(["pet"])
    vault.remove(record.id)
"""

import logging
import uuid
from typing import Any, Iterable, Optional

from .config import VaultConfig
from .errors import CorruptSnapshot, EmptyKeywordSet, StorageFailure
from .gate import Gate
from .kv_store import SqliteKeyValueStore
from .persistence import CollectionStore, SessionFlagStore
from .protocol import KeyValueStoreProtocol
from .search import normalize_query, search as search_records
from .types import ImageRecord, normalize_keywords, utc_now

logger = logging.getLogger(__name__)

EXPORT_FORMAT = "imgvault-export"
EXPORT_VERSION = 1

# Table used for the session scope when it is kept on disk (CLI sessions)
SESSION_TABLE = "session_storage"


def _dedupe_ids(records: Iterable[ImageRecord]) -> list[ImageRecord]:
    """Keep the first record for each id, dropping later duplicates."""
    seen: set[str] = set()
    result = []
    for record in records:
        if record.id in seen:
            logger.warning("Dropping duplicate record id from snapshot: %s", record.id)
            continue
        seen.add(record.id)
        result.append(record)
    return result


class Vault:
    """
    The authoritative in-memory collection of image records.

    Records are ordered most recently inserted first. The collection starts
    empty; call load() once after the gate has been passed.
    """

    def __init__(self, collection_store: CollectionStore):
        """
        Args:
            collection_store: Durable snapshot the collection is synced to
        """
        self._collection_store = collection_store
        self._records: list[ImageRecord] = []
        # Set when the stored snapshot could not be read; writing would
        # replace records this process never saw
        self._unreadable = False

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def load(self) -> int:
        """
        Hydrate the collection from durable storage.

        A corrupt snapshot degrades to an empty collection. Other storage
        failures also leave the collection empty, then re-raise so the
        caller can warn the user; until a later load() succeeds, mutations
        stay in memory and are not written over the stored snapshot.

        Returns:
            Number of records loaded
        """
        try:
            records = self._collection_store.load()
        except CorruptSnapshot as e:
            logger.warning("Stored snapshot is unreadable, starting empty: %s", e)
            self._records = []
            self._unreadable = False
            return 0
        except StorageFailure:
            self._records = []
            self._unreadable = True
            raise
        self._records = _dedupe_ids(records)
        self._unreadable = False
        logger.info("Loaded %d records", len(self._records))
        return len(self._records)

    def close(self) -> None:
        self._collection_store.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    def insert(
        self,
        content: str,
        display_name: str = "",
        keywords: Iterable[str] = (),
    ) -> ImageRecord:
        """
        Add a new record at the front of the collection.

        Args:
            content: Opaque image payload handle
            display_name: Free-text label
            keywords: Raw keywords; normalized before storing

        Returns:
            The created record

        Raises:
            EmptyKeywordSet: no keyword survives normalization
            StorageFailure: the record was added in memory but not saved
        """
        if not isinstance(content, str):
            raise ValueError("Image content must be a string handle")
        if display_name is None:
            display_name = ""
        if not isinstance(display_name, str):
            raise ValueError("Display name must be a string")
        normalized = normalize_keywords(keywords)
        if not normalized:
            raise EmptyKeywordSet("At least one keyword is required")

        existing = {r.id for r in self._records}
        new_id = str(uuid.uuid4())
        while new_id in existing:
            new_id = str(uuid.uuid4())

        record = ImageRecord(
            id=new_id,
            content=content,
            display_name=display_name,
            keywords=normalized,
            created_at=utc_now(),
        )
        self._records.insert(0, record)
        logger.info("Inserted %s with keywords %s", record.id, ", ".join(normalized))
        self._persist(record)
        return record

    def remove(self, id: str) -> bool:
        """
        Remove the record with ``id``.

        Removing an id that is not present does nothing and writes nothing.

        Returns:
            True if a record was removed

        Raises:
            StorageFailure: the record was removed in memory but the
                removal was not saved
        """
        for i, record in enumerate(self._records):
            if record.id == id:
                break
        else:
            logger.debug("Remove of absent id %s ignored", id)
            return False

        del self._records[i]
        logger.info("Removed %s", id)
        self._persist(record)
        return True

    def _persist(self, record: Optional[ImageRecord] = None) -> None:
        """Write the full collection. Memory stays authoritative on failure.

        Refuses to write while the stored snapshot is unreadable, so a
        transient read error never overwrites saved records.
        """
        if self._unreadable:
            logger.warning("Not saving: stored collection could not be read; call load() again")
            raise StorageFailure(
                "Change applied but not saved: the stored collection could not "
                "be read, so it was left untouched. Reload to retry.",
                record=record,
            )
        try:
            self._collection_store.save(self._records)
        except StorageFailure as e:
            logger.warning("Saving collection failed, changes kept in memory only: %s", e)
            raise StorageFailure(
                f"Change applied but not saved; it may not survive a reload: {e}",
                record=record,
            ) from e

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    def all(self) -> list[ImageRecord]:
        """All records, most recent first. The list is a copy."""
        return list(self._records)

    def get(self, id: str) -> Optional[ImageRecord]:
        for record in self._records:
            if record.id == id:
                return record
        return None

    def count(self) -> int:
        return len(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def search(self, keywords: Iterable[str]) -> list[ImageRecord]:
        """
        Records matching all of the given keywords.

        Query terms are normalized first, so empty terms are dropped and
        case is ignored. See search.search() for matching rules.
        """
        return search_records(self._records, normalize_query(keywords))

    # -------------------------------------------------------------------------
    # Export / Import
    # -------------------------------------------------------------------------

    def export_data(self) -> dict[str, Any]:
        """
        Export the whole collection as a single dict.

        Returns:
            Dict in imgvault-export format (version 1) with a ``records`` list
            in collection order.
        """
        return {
            "format": EXPORT_FORMAT,
            "version": EXPORT_VERSION,
            "exported_at": utc_now(),
            "info": {"count": len(self._records)},
            "records": [r.to_dict() for r in self._records],
        }

    def import_data(self, data: dict, *, mode: str = "merge") -> dict[str, Any]:
        """
        Import records from an export dict.

        Args:
            data: Dict in imgvault-export format
            mode: "merge" (skip existing IDs, put imported records in front)
                or "replace" (discard the current collection)

        Returns:
            Dict with stats: {imported, skipped}

        Raises:
            ValueError: unknown format, version, mode or malformed record
            StorageFailure: the import was applied in memory but not saved
        """
        if mode not in ("merge", "replace"):
            raise ValueError(f"Invalid import mode: {mode!r} (expected 'merge' or 'replace')")
        if data.get("format") != EXPORT_FORMAT:
            raise ValueError(f"Invalid export format (expected '{EXPORT_FORMAT}')")
        version = data.get("version", 0)
        if not isinstance(version, int) or isinstance(version, bool):
            raise ValueError(f"Export format version must be an integer, got {version!r}")
        if version > EXPORT_VERSION:
            raise ValueError(
                f"Export format version {version} is not supported "
                f"(this version supports up to {EXPORT_VERSION})"
            )
        entries = data.get("records", [])
        if not isinstance(entries, list):
            raise ValueError("Export 'records' must be a list")

        incoming = []
        for i, entry in enumerate(entries):
            try:
                incoming.append(ImageRecord.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                raise ValueError(f"Record {i} in import is malformed: {e}") from e

        existing_ids: set[str] = set()
        if mode == "merge":
            existing_ids = {r.id for r in self._records}

        to_import = []
        skipped = 0
        for record in incoming:
            if record.id in existing_ids:
                skipped += 1
                continue
            existing_ids.add(record.id)
            to_import.append(record)

        if mode == "replace":
            self._records = to_import
        else:
            self._records = to_import + self._records
        logger.info("Imported %d records (%s), skipped %d", len(to_import), mode, skipped)
        self._persist()
        return {"imported": len(to_import), "skipped": skipped}


def open_vault(config: VaultConfig) -> Vault:
    """Create a Vault backed by the durable store named in ``config``.

    The returned vault is empty until load() is called.
    """
    kv = SqliteKeyValueStore(config.database_path, table="local_storage")
    return Vault(CollectionStore(kv, key=config.collection_key))


def open_gate(
    config: VaultConfig,
    session_kv: Optional[KeyValueStoreProtocol] = None,
) -> Gate:
    """Create a Gate using the configured secret.

    Args:
        config: Vault configuration
        session_kv: Session-scoped backend; defaults to a table in the
            vault database that lives until the session is cleared
    """
    if session_kv is None:
        session_kv = SqliteKeyValueStore(config.database_path, table=SESSION_TABLE)
    return Gate(config.effective_secret, SessionFlagStore(session_kv, key=config.session_key))
