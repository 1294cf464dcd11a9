"""
Exceptions and error logging for imgvault.

Logs full stack traces for debugging while showing clean messages to users.
"""

import logging
import os
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class VaultError(Exception):
    """Base class for all imgvault errors."""


class InvalidKeyword(VaultError, ValueError):
    """A keyword is empty after trimming and lowercasing."""


class EmptyKeywordSet(VaultError, ValueError):
    """An insert was attempted with no valid keywords."""


class StorageFailure(VaultError):
    """
    Durable storage could not be read or written.

    When raised from a vault mutation, the in-memory change has already
    been applied; ``record`` is the record that was inserted or removed.
    """

    def __init__(self, message: str, *, record=None):
        super().__init__(message)
        self.record = record


class CorruptSnapshot(StorageFailure):
    """The stored collection snapshot could not be parsed."""


class AccessDenied(VaultError):
    """The candidate secret did not match."""


ERROR_LOG_FILENAME = "imgvault-errors.log"


def _error_log_path(store_path: Optional[Path] = None) -> Path:
    if store_path is not None:
        return Path(store_path) / ERROR_LOG_FILENAME
    store = os.environ.get("IMGVAULT_STORE_PATH")
    if store:
        return Path(store) / ERROR_LOG_FILENAME
    return Path.home() / ".imgvault" / ERROR_LOG_FILENAME


def _describe(exc: BaseException) -> str:
    """One-line summary: exception class plus the affected record, if any."""
    line = type(exc).__name__
    record = getattr(exc, "record", None)
    if record is not None:
        record_id = getattr(record, "id", record)
        line += f" (record {record_id})"
    return line


def log_exception(
    exc: BaseException,
    context: str = "",
    store_path: Optional[Path] = None,
) -> Path:
    """
    Append an exception and its traceback to the store's error log.

    Each entry starts with a UTC timestamp, the command context and a
    summary line naming the exception class and, for a StorageFailure
    raised from a mutation, the id of the record that was not saved.

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., command name)
        store_path: Store directory; defaults to IMGVAULT_STORE_PATH or
            ~/.imgvault

    Returns:
        Path to the error log file, whether or not it could be written
    """
    log_path = _error_log_path(store_path)
    timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")
    entry = [f"[{timestamp}] {context}".rstrip(), _describe(exc)]
    entry.append("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a", encoding="utf-8") as f:
            f.write("\n" + "\n".join(entry))
    except OSError as e:
        logger.warning("Could not write error log %s: %s", log_path, e)
    return log_path
