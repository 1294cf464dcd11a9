"""
Logging configuration for imgvault.

Quiet by default for better CLI output; debug output and a persistent
operations log are opt-in.
"""

import logging
import sys
import warnings
from logging.handlers import RotatingFileHandler
from pathlib import Path


def configure_quiet_mode(quiet: bool = True):
    """
    Configure logging so only problems reach the terminal.

    Args:
        quiet: If True, show warnings and errors only. If False, show INFO too.
    """
    vault_logger = logging.getLogger("imgvault")
    if quiet:
        warnings.filterwarnings("ignore", category=DeprecationWarning)
        vault_logger.setLevel(logging.WARNING)
    else:
        vault_logger.setLevel(logging.INFO)

    if not vault_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        vault_logger.addHandler(handler)
        vault_logger.propagate = False


def enable_debug_mode():
    """Enable debug-level logging to stderr."""
    warnings.filterwarnings("default")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Add stderr handler if not already present
    if not any(isinstance(h, logging.StreamHandler) and h.stream == sys.stderr
               for h in root_logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S"
        ))
        root_logger.addHandler(handler)

    vault_logger = logging.getLogger("imgvault")
    vault_logger.setLevel(logging.DEBUG)
    # Hand output to the root handler instead of the quiet-mode one
    for h in list(vault_logger.handlers):
        if not isinstance(h, RotatingFileHandler):
            vault_logger.removeHandler(h)
    vault_logger.propagate = True


def configure_ops_log(store_path):
    """Configure a persistent operations log for a vault store.

    Writes to {store_path}/imgvault-ops.log using a rotating file handler
    (1MB max, 3 backups). Always active regardless of --verbose.
    Returns the handler so it can be removed when the command finishes.
    """
    log_path = Path(store_path) / "imgvault-ops.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        str(log_path),
        maxBytes=1_000_000,
        backupCount=3,
    )
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    vault_logger = logging.getLogger("imgvault")
    vault_logger.addHandler(handler)
    # Ensure INFO gets through to the file even in quiet mode
    if vault_logger.level == logging.NOTSET or vault_logger.level > logging.INFO:
        vault_logger.setLevel(logging.INFO)
        for h in vault_logger.handlers:
            if h is not handler and h.level == logging.NOTSET:
                h.setLevel(logging.WARNING)

    return handler
