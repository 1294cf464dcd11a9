"""
Image Vault

A personal, password-gated store of tagged images with multi-keyword
intersection search.

Quick Start:
    from imgvault import open_gate, open_vault, load_or_create_config, get_store_path

    config = load_or_create_config(get_store_path())
    open_gate(config).authenticate("secret")

    vault = open_vault(config)
    vault.load()
    vault.insert("data:image/png;base64,...", "cat.png", ["cat", "pet"])
    results = vault.search(["pet"])

CLI Usage:
    imgvault init
    imgvault unlock
    imgvault add cat.png -k cat -k pet
    imgvault find pet

Default Store:
    ~/.imgvault/ (override with IMGVAULT_STORE_PATH or --store).

Environment Variables:
    IMGVAULT_STORE_PATH  - Override default store location
    IMGVAULT_SECRET      - Override the configured gate secret
    IMGVAULT_VERBOSE     - Set to 1 for debug logging

The gate is a soft deterrent, not a security boundary: the secret is
stored in plain text and images are not encrypted.
"""

from .api import Vault, open_gate, open_vault
from .config import VaultConfig, get_store_path, load_config, load_or_create_config
from .errors import (
    AccessDenied,
    CorruptSnapshot,
    EmptyKeywordSet,
    InvalidKeyword,
    StorageFailure,
    VaultError,
)
from .gate import Gate
from .kv_store import MemoryKeyValueStore, SqliteKeyValueStore
from .persistence import CollectionStore, SessionFlagStore
from .search import normalize_query
from .types import ImageRecord, normalize_keywords, validate_keyword

__version__ = "0.1.0"
__all__ = [
    "Vault",
    "open_vault",
    "open_gate",
    "Gate",
    "ImageRecord",
    "CollectionStore",
    "SessionFlagStore",
    "SqliteKeyValueStore",
    "MemoryKeyValueStore",
    "VaultConfig",
    "get_store_path",
    "load_config",
    "load_or_create_config",
    "normalize_query",
    "normalize_keywords",
    "validate_keyword",
    "VaultError",
    "InvalidKeyword",
    "EmptyKeywordSet",
    "StorageFailure",
    "CorruptSnapshot",
    "AccessDenied",
]
