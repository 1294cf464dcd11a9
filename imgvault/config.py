"""
Configuration management for image vaults.

The configuration is stored as a TOML file in the store directory.
It names the shared secret for the gate and where data is kept.
"""

import os
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import tomli_w

from .persistence import DEFAULT_COLLECTION_KEY, DEFAULT_SESSION_KEY


CONFIG_FILENAME = "imgvault.toml"
CONFIG_VERSION = 1
DEFAULT_DATABASE = "vault.db"


def get_store_path() -> Path:
    """Store directory: IMGVAULT_STORE_PATH, or ~/.imgvault."""
    store = os.environ.get("IMGVAULT_STORE_PATH")
    if store:
        return Path(store).expanduser()
    return Path.home() / ".imgvault"


@dataclass
class VaultConfig:
    """Complete vault configuration."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    # Gate
    secret: Optional[str] = None

    # Storage
    database: str = DEFAULT_DATABASE
    collection_key: str = DEFAULT_COLLECTION_KEY
    session_key: str = DEFAULT_SESSION_KEY

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME

    @property
    def database_path(self) -> Path:
        """Path to the SQLite database, relative names resolved in the store."""
        db = Path(self.database).expanduser()
        return db if db.is_absolute() else self.path / db

    @property
    def effective_secret(self) -> Optional[str]:
        """The secret in force: IMGVAULT_SECRET overrides the file."""
        return os.environ.get("IMGVAULT_SECRET") or self.secret

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()


def load_config(store_path: Path) -> VaultConfig:
    """
    Load configuration from a store directory.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = store_path / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Config is not valid TOML: {config_path}: {e}") from e

    # Validate version
    vault = data.get("vault", {})
    version = vault.get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    gate = data.get("gate", {})
    storage = data.get("storage", {})
    return VaultConfig(
        path=store_path,
        version=version,
        created=vault.get("created", ""),
        secret=gate.get("secret") or None,
        database=storage.get("database", DEFAULT_DATABASE),
        collection_key=storage.get("collection_key", DEFAULT_COLLECTION_KEY),
        session_key=storage.get("session_key", DEFAULT_SESSION_KEY),
    )


def save_config(config: VaultConfig) -> None:
    """
    Save configuration to the store directory.

    Creates the directory if it doesn't exist. The file holds the secret,
    so it is written owner-readable only.
    """
    config.path.mkdir(parents=True, exist_ok=True)

    data = {
        "vault": {
            "version": config.version,
            "created": config.created,
        },
        "gate": {},
        "storage": {
            "database": config.database,
            "collection_key": config.collection_key,
            "session_key": config.session_key,
        },
    }
    # TOML has no null
    if config.secret:
        data["gate"]["secret"] = config.secret

    fd = os.open(config.config_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as f:
        tomli_w.dump(data, f)


def load_or_create_config(store_path: Path) -> VaultConfig:
    """
    Load existing config or create a new one with defaults.

    This is the main entry point for config management.
    """
    config_path = store_path / CONFIG_FILENAME

    if config_path.exists():
        return load_config(store_path)
    else:
        config = VaultConfig(path=store_path)
        save_config(config)
        return config
