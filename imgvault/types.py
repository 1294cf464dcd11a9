"""
Data types for the image vault.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from .errors import InvalidKeyword


def utc_now() -> str:
    """Current UTC timestamp in canonical format: YYYY-MM-DDTHH:MM:SS.

    All timestamps in imgvault are UTC, stored without timezone suffix.
    """
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")


def parse_utc_timestamp(ts: str) -> datetime:
    """Parse a stored timestamp string to a timezone-aware UTC datetime.

    Handles both the canonical format (no suffix) and browser-style
    formats that include milliseconds and a 'Z' suffix.
    """
    ts = ts.replace("Z", "+00:00")
    dt = datetime.fromisoformat(ts)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def validate_keyword(raw: Any) -> str:
    """Trim and lowercase a keyword.

    Raises InvalidKeyword if nothing is left, or if ``raw`` is not a string.
    """
    if not isinstance(raw, str):
        raise InvalidKeyword(f"Keyword must be a string: {raw!r}")
    keyword = raw.strip().lower()
    if not keyword:
        raise InvalidKeyword(f"Keyword is empty: {raw!r}")
    return keyword


def normalize_keywords(raw_list: Iterable[Any]) -> tuple[str, ...]:
    """
    Normalize a list of raw keywords into a duplicate-free tuple.

    Invalid entries are dropped silently. Duplicates after normalization
    are merged; the first occurrence keeps its position.

    Raises TypeError for a bare string, which would otherwise be split
    into single-character keywords.
    """
    if isinstance(raw_list, (str, bytes)):
        raise TypeError(f"Keywords must be a list of strings, not {type(raw_list).__name__}")
    seen: dict[str, None] = {}
    for raw in raw_list:
        try:
            keyword = validate_keyword(raw)
        except InvalidKeyword:
            continue
        seen.setdefault(keyword, None)
    return tuple(seen)


@dataclass(frozen=True)
class ImageRecord:
    """
    One tagged image in the vault.

    This is an immutable snapshot: records are created by Vault.insert()
    and destroyed by Vault.remove(). There is no update.

    Attributes:
        id: Unique identifier, generated at creation
        content: Opaque image payload handle (e.g. a data: URI)
        display_name: Free-text label, may be empty
        keywords: Normalized, unique keywords in first-seen order
        created_at: UTC ISO timestamp fixed at creation
    """
    id: str
    content: str
    display_name: str = ""
    keywords: tuple[str, ...] = field(default_factory=tuple)
    created_at: str = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        """Serialize to the snapshot wire format."""
        return {
            "id": self.id,
            "src": self.content,
            "name": self.display_name,
            "keywords": list(self.keywords),
            "uploadedAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "ImageRecord":
        """Deserialize from the snapshot wire format.

        Keywords are re-normalized; storage is not trusted to be
        deduplicated. Raises KeyError, TypeError or ValueError on
        malformed input.
        """
        id = d["id"]
        content = d["src"]
        name = d.get("name") or ""
        keywords = d.get("keywords") or []
        created_at = d["uploadedAt"]
        if not isinstance(id, str) or not id:
            raise ValueError(f"Record id must be a non-empty string: {id!r}")
        if not isinstance(content, str):
            raise TypeError(f"Record content must be a string (id={id})")
        if not isinstance(name, str):
            raise TypeError(f"Record name must be a string (id={id})")
        if not isinstance(keywords, list):
            raise TypeError(f"Record keywords must be a list (id={id})")
        if not isinstance(created_at, str):
            raise TypeError(f"Record timestamp must be a string (id={id})")
        parse_utc_timestamp(created_at)
        return cls(
            id=id,
            content=content,
            display_name=name,
            keywords=normalize_keywords(keywords),
            created_at=created_at,
        )

    def __str__(self) -> str:
        label = self.display_name or "(unnamed)"
        return f"{self.id}: {label} [{', '.join(self.keywords)}]"
