"""
Keyword search over a vault collection.

A record matches a query when every query term is a substring of at least
one of the record's keywords (AND across terms, OR across keywords).
Matching is plain substring containment, so "art" matches "party".
"""

from typing import Iterable, Sequence

from .types import ImageRecord, normalize_keywords


def normalize_query(raw_terms: Iterable[str]) -> tuple[str, ...]:
    """Trim and lowercase query terms, dropping empties and duplicates.

    Callers should pass query terms through this before search().
    """
    return normalize_keywords(raw_terms)


def matches(record: ImageRecord, query_keywords: Iterable[str]) -> bool:
    """True if every query term is contained in some keyword of the record."""
    return all(
        any(term in keyword for keyword in record.keywords)
        for term in query_keywords
    )


def search(
    collection: Sequence[ImageRecord],
    query_keywords: Iterable[str],
) -> list[ImageRecord]:
    """
    Filter a collection by a set of query keywords.

    Terms are expected lowercase and non-empty; see normalize_query().
    An empty term slipping through matches every record. An empty query
    returns the collection unchanged.

    Args:
        collection: Records in display order
        query_keywords: Query terms

    Returns:
        Matching records, in the same order as ``collection``
    """
    terms = list(query_keywords)
    if not terms:
        return list(collection)
    return [record for record in collection if matches(record, terms)]
