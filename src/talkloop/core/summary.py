"""Spoken text composition for search turns."""

from __future__ import annotations

import re

from talkloop.models.messages import SearchResults

_BOLD_RE = re.compile(r"\*\*")
_SPACE_RE = re.compile(r"\s+")


def clean_for_speech(text: str) -> str:
    """Strip markdown bold markers and collapse whitespace."""
    return _SPACE_RE.sub(" ", _BOLD_RE.sub("", text)).strip()


def topic_of(terms: list[str]) -> str:
    return " ".join(t.strip() for t in terms if t.strip())


def compose_results_summary(terms: list[str], results: SearchResults) -> str:
    """English summary of a search, used when the backend returns none."""
    topic = topic_of(terms)
    if not results.products:
        return f"No results found for {topic}. Try something else!"
    return f"Found {results.total} results for {topic}"


def compose_search_announcement(terms: list[str]) -> str:
    return f"Searching for {topic_of(terms)}"
