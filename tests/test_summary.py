"""Tests for spoken summary composition."""

from __future__ import annotations

from talkloop.core.summary import (
    clean_for_speech,
    compose_results_summary,
    compose_search_announcement,
    topic_of,
)
from talkloop.models.messages import Pagination, SearchResults


class TestCleanForSpeech:
    def test_strips_bold(self) -> None:
        assert clean_for_speech("Try **Napoli** pizza") == "Try Napoli pizza"

    def test_collapses_whitespace(self) -> None:
        assert clean_for_speech("  one\n\ntwo   three ") == "one two three"


class TestComposeSummary:
    def test_found(self) -> None:
        results = SearchResults(products=[{"id": i} for i in range(3)])
        assert compose_results_summary(["pizza"], results) == "Found 3 results for pizza"

    def test_found_uses_backend_total(self) -> None:
        results = SearchResults(products=[{"id": 1}], pagination=Pagination(total_products=42))
        assert compose_results_summary(["pizza"], results) == "Found 42 results for pizza"

    def test_none_found(self) -> None:
        assert (
            compose_results_summary(["vegan", "sushi"], SearchResults())
            == "No results found for vegan sushi. Try something else!"
        )

    def test_topic_skips_blank_terms(self) -> None:
        assert topic_of([" thai ", "", "curry"]) == "thai curry"

    def test_announcement(self) -> None:
        assert compose_search_announcement(["burgers"]) == "Searching for burgers"
