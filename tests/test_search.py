"""
Tests for keyword search.

Pure function tests: no storage involved.
"""

import pytest

from imgvault.search import matches, normalize_query, search
from imgvault.types import ImageRecord


def _rec(id, *keywords):
    return ImageRecord(id=id, content=f"data:{id}", keywords=tuple(keywords))


@pytest.fixture
def collection():
    return [
        _rec("car", "red", "car"),
        _rec("boat", "red", "boat"),
    ]


class TestConjunction:

    def test_single_term_matches_both(self, collection):
        assert [r.id for r in search(collection, {"red"})] == ["car", "boat"]

    def test_all_terms_required(self, collection):
        assert [r.id for r in search(collection, {"red", "car"})] == ["car"]

    def test_unmatched_term_excludes_everything(self, collection):
        assert search(collection, {"red", "plane"}) == []

    def test_terms_may_match_different_keywords(self):
        """Each term needs some keyword; they don't have to share one."""
        records = [_rec("a", "sunset", "beach")]
        assert search(records, ["sun", "bea"]) == records


class TestSubstringMatching:

    def test_substring_of_keyword_matches(self):
        records = [_rec("p", "party")]
        assert search(records, ["art"]) == records

    def test_keyword_longer_than_term_required(self):
        """Containment is term-in-keyword, not keyword-in-term."""
        records = [_rec("c", "cat")]
        assert search(records, ["cats"]) == []

    def test_matching_is_case_sensitive_inside_search(self):
        """Normalization is the caller's job; search itself does not casefold."""
        records = [_rec("c", "cat")]
        assert search(records, ["CAT"]) == []
        assert search(records, normalize_query(["CAT"])) == records

    def test_empty_term_matches_everything(self, collection):
        """An empty term that bypasses normalization matches trivially."""
        assert search(collection, [""]) == collection

    def test_record_without_keywords_never_matches(self):
        records = [_rec("bare")]
        assert search(records, ["a"]) == []
        assert matches(records[0], []) is True


class TestIdentityAndOrder:

    def test_empty_query_returns_collection(self, collection):
        assert search(collection, set()) == collection

    def test_empty_query_returns_copy(self, collection):
        result = search(collection, [])
        result.append(_rec("x", "x"))
        assert len(collection) == 2

    def test_order_preserved(self):
        records = [_rec(str(i), "tag", f"n{i}") for i in range(10)]
        result = search(records, ["tag"])
        assert [r.id for r in result] == [str(i) for i in range(10)]

    def test_search_does_not_mutate_input(self, collection):
        before = list(collection)
        search(collection, ["car"])
        assert collection == before


class TestNormalizeQuery:

    def test_trims_lowercases_and_drops_empty(self):
        assert normalize_query([" Red ", "", "CAR", "red"]) == ("red", "car")
