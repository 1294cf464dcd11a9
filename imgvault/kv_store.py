"""
Key-value storage backends.

Two scopes, mirroring what a browser offers a client-side app:

- SqliteKeyValueStore: durable, lives as long as the store directory
  (the "local storage" scope)
- MemoryKeyValueStore: lives as long as the process (the "session" scope)

Values are opaque strings. Backends know nothing about vault records.
"""

import logging
import re
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .errors import StorageFailure

logger = logging.getLogger(__name__)

# Table names are interpolated into SQL, so keep them to plain identifiers
_TABLE_NAME_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


class SqliteKeyValueStore:
    """
    SQLite-backed key-value table.

    Every set() or delete() is a single committed transaction, so a reader
    sees either the previous value or the new one, never a partial write.
    All SQLite and filesystem errors surface as StorageFailure.
    """

    def __init__(self, db_path: Path, table: str = "local_storage"):
        """
        Args:
            db_path: Path to SQLite database file
            table: Table holding this store's keys
        """
        if not _TABLE_NAME_RE.match(table):
            raise ValueError(f"Invalid table name: {table!r}")
        self._db_path = Path(db_path)
        self._table = table
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db()

    def _init_db(self) -> None:
        """Initialize the SQLite database."""
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self._db_path))
            self._conn.row_factory = sqlite3.Row
            self._conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {self._table} (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            self._conn.commit()
        except (sqlite3.Error, OSError) as e:
            raise StorageFailure(f"Cannot open storage at {self._db_path}: {e}") from e

    @property
    def path(self) -> Path:
        return self._db_path

    def get(self, key: str) -> Optional[str]:
        """Return the value stored under ``key``, or None."""
        try:
            row = self._conn.execute(
                f"SELECT value FROM {self._table} WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as e:
            raise StorageFailure(f"Read of {key!r} failed: {e}") from e
        return None if row is None else row["value"]

    def set(self, key: str, value: str) -> None:
        """Replace the value stored under ``key``."""
        now = datetime.now(timezone.utc).isoformat()
        try:
            with self._conn:
                self._conn.execute(f"""
                    INSERT OR REPLACE INTO {self._table} (key, value, updated_at)
                    VALUES (?, ?, ?)
                """, (key, value, now))
        except sqlite3.Error as e:
            raise StorageFailure(f"Write of {key!r} failed: {e}") from e
        logger.debug("Stored %s (%d chars) in %s", key, len(value), self._table)

    def delete(self, key: str) -> bool:
        """Remove ``key``. Returns True if it existed."""
        try:
            with self._conn:
                cursor = self._conn.execute(
                    f"DELETE FROM {self._table} WHERE key = ?", (key,)
                )
        except sqlite3.Error as e:
            raise StorageFailure(f"Delete of {key!r} failed: {e}") from e
        return cursor.rowcount > 0

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class MemoryKeyValueStore:
    """In-process key-value store. Contents end with the process."""

    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def close(self) -> None:
        self._data.clear()
