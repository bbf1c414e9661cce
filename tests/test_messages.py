"""Tests for collaborator request/response models."""

from __future__ import annotations

import base64

import pytest
from pydantic import ValidationError

from talkloop.models.messages import (
    Interpretation,
    InterpretationRequest,
    Pagination,
    SearchRequest,
    SearchResults,
    SynthesizedAudio,
    Transcript,
    normalize_interpretation_payload,
)


class TestTranscript:
    def test_blank_is_empty(self) -> None:
        assert Transcript(text=" \n").is_empty
        assert not Transcript(text="pizza").is_empty

    def test_language_optional(self) -> None:
        assert Transcript.model_validate({"text": "hi"}).language is None


class TestSynthesizedAudio:
    def test_decodes_base64(self) -> None:
        encoded = base64.b64encode(b"\x01\x02\x03").decode()
        audio = SynthesizedAudio.model_validate({"data": encoded, "contentType": "audio/wav"})
        assert audio.data == b"\x01\x02\x03"
        assert audio.content_type == "audio/wav"

    def test_defaults_to_mpeg(self) -> None:
        assert SynthesizedAudio(data=b"x").content_type == "audio/mpeg"


# ---------------------------------------------------------------------------
# Interpretation
# ---------------------------------------------------------------------------


class TestInterpretation:
    def test_camel_case_wire_format(self) -> None:
        result = Interpretation.model_validate(
            {
                "spokenText": "On it",
                "shouldSearch": True,
                "searchTerms": ["shawarma"],
                "shouldStop": False,
                "sessionId": "abc",
            }
        )
        assert result.spoken_text == "On it"
        assert result.should_search
        assert result.search_terms == ["shawarma"]
        assert result.session_id == "abc"

    def test_search_terms_coerced(self) -> None:
        assert Interpretation.model_validate({"searchTerms": None}).search_terms == []
        assert Interpretation.model_validate({"searchTerms": "sushi"}).search_terms == ["sushi"]
        assert Interpretation.model_validate({"searchTerms": "  "}).search_terms == []

    def test_nested_audio(self) -> None:
        encoded = base64.b64encode(b"mp3").decode()
        result = Interpretation.model_validate(
            {"spokenText": "Hi", "audio": {"data": encoded, "contentType": "audio/mpeg"}}
        )
        assert result.audio is not None
        assert result.audio.data == b"mp3"


class TestNormalizeInterpretationPayload:
    def test_plain_text_untouched(self) -> None:
        payload = {"spokenText": "Hello there"}
        assert normalize_interpretation_payload(payload) is payload

    def test_embedded_schema_merged(self) -> None:
        payload = {
            "spokenText": '{"response": "Here you go", "shouldSearch": true, '
            '"searchTerms": ["burger"]}',
            "sessionId": "s1",
        }
        merged = normalize_interpretation_payload(payload)
        assert merged == {
            "sessionId": "s1",
            "shouldSearch": True,
            "searchTerms": ["burger"],
            "spokenText": "Here you go",
        }

    def test_code_fence_stripped(self) -> None:
        result = Interpretation.model_validate(
            {"spokenText": '```json\n{"spokenText": "Fenced", "shouldStop": true}\n```'}
        )
        assert result.spoken_text == "Fenced"
        assert result.should_stop

    def test_json_without_response_key_untouched(self) -> None:
        payload = {"spokenText": '{"foo": 1}'}
        assert normalize_interpretation_payload(payload) is payload

    def test_invalid_json_untouched(self) -> None:
        payload = {"spokenText": "{not json"}
        assert normalize_interpretation_payload(payload) is payload


class TestInterpretationRequest:
    def test_text_request(self) -> None:
        request = InterpretationRequest(session_id="s", text="pizza")
        dumped = request.model_dump(by_alias=True, exclude_none=True)
        assert dumped == {
            "sessionId": "s",
            "language": "en",
            "includeAudio": True,
            "text": "pizza",
        }

    def test_audio_request(self) -> None:
        request = InterpretationRequest(session_id="s", audio=b"RIFF", mime_type="audio/wav")
        assert request.text is None

    def test_requires_exactly_one_input(self) -> None:
        with pytest.raises(ValidationError):
            InterpretationRequest(session_id="s")
        with pytest.raises(ValidationError):
            InterpretationRequest(session_id="s", text="a", audio=b"b")


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


class TestSearchModels:
    def test_term_joins_terms(self) -> None:
        assert SearchRequest(terms=["spicy", " ", "ramen "]).term == "spicy ramen"

    def test_default_location(self) -> None:
        request = SearchRequest(terms=["x"])
        assert request.location.lat == pytest.approx(25.2855)
        assert request.location.lon == pytest.approx(51.5314)

    def test_total_from_pagination(self) -> None:
        results = SearchResults(
            products=[{"id": 1}], pagination=Pagination(total_products=120, total_pages=6)
        )
        assert results.total == 120

    def test_total_falls_back_to_count(self) -> None:
        assert SearchResults(products=[{"id": 1}, {"id": 2}]).total == 2
        assert SearchResults(products=[{"id": 1}], pagination=Pagination()).total == 1

    def test_backend_payload(self) -> None:
        results = SearchResults.model_validate(
            {
                "products": [{"name": "Margherita"}],
                "pagination": {"current_page": 2, "total_pages": 3, "has_next": True},
                "all_restaurants": ["Napoli"],
            }
        )
        assert results.pagination is not None
        assert results.pagination.has_next
        assert results.all_restaurants == ["Napoli"]
        assert results.summary is None
