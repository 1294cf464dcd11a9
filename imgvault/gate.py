"""
Shared-secret gate in front of the vault.

This is a soft access deterrent, not a security boundary. There is one
secret for everybody, it is stored in plain text in the config file, and
the vault contents are not encrypted. Anyone who can read the store
directory can read the images without passing the gate.
"""

import hmac
import logging
from typing import Optional

from .errors import AccessDenied
from .persistence import SessionFlagStore

logger = logging.getLogger(__name__)


class Gate:
    """Checks a candidate secret and records success in the session."""

    def __init__(self, secret: Optional[str], session: SessionFlagStore):
        """
        Args:
            secret: The shared secret; None or empty denies everything
            session: Where the authenticated flag is kept
        """
        self._secret = secret
        self._session = session

    def authenticate(self, candidate: str) -> None:
        """
        Compare ``candidate`` with the configured secret.

        Sets the session flag on success.

        Raises:
            AccessDenied: on mismatch, or if no secret is configured
        """
        if not self._secret:
            logger.warning("Authentication attempted with no secret configured")
            raise AccessDenied("No secret is configured for this vault")
        if not hmac.compare_digest(candidate.encode("utf-8"), self._secret.encode("utf-8")):
            logger.info("Authentication failed")
            raise AccessDenied("Access denied. Invalid password.")
        self._session.set_authenticated()
        logger.info("Authentication succeeded")

    def is_authenticated(self) -> bool:
        return self._session.is_authenticated()

    def logout(self) -> None:
        """End the session. The collection is left untouched."""
        self._session.clear_authenticated()
        logger.info("Session cleared")

    def close(self) -> None:
        self._session.close()
