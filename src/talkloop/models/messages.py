"""Request/response models for the remote collaborators.

The wire format is owned by the backend; these models pin the fields the
controller depends on. Incoming payloads use camelCase keys, Python code
uses snake_case (both are accepted on validation).
"""

from __future__ import annotations

import base64
import json
import logging
import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger("talkloop.services")

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)

# Keys the chat backend may use for the spoken reply inside its own schema.
_RESPONSE_KEYS = ("response", "spokenText", "spoken_text", "text")


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SynthesizedAudio(_WireModel):
    """Pre-synthesized speech returned by a collaborator."""

    data: bytes
    content_type: str = "audio/mpeg"

    @field_validator("data", mode="before")
    @classmethod
    def _decode_base64(cls, v: Any) -> Any:
        if isinstance(v, str):
            return base64.b64decode(v)
        return v


class Transcript(_WireModel):
    """Output of the transcription collaborator."""

    text: str = ""
    language: str | None = None

    @property
    def is_empty(self) -> bool:
        """True when no speech was recognised (non-fatal outcome)."""
        return not self.text.strip()


def _decode_embedded_schema(raw: str) -> dict[str, Any] | None:
    """Return the decoded object when *raw* is the backend's own JSON schema."""
    candidate = raw.strip()
    fenced = _FENCE_RE.match(candidate)
    if fenced:
        candidate = fenced.group(1).strip()
    if not candidate.startswith("{"):
        return None
    try:
        decoded = json.loads(candidate)
    except ValueError:
        return None
    if not isinstance(decoded, dict):
        return None
    if not any(isinstance(decoded.get(k), str) for k in _RESPONSE_KEYS):
        return None
    return decoded


def normalize_interpretation_payload(data: dict[str, Any]) -> dict[str, Any]:
    """Merge a JSON schema mistakenly serialised into ``spokenText``.

    Some chat backends return their whole structured reply as the spoken
    text. Speaking that aloud would read raw JSON to the user, so the
    embedded fields are decoded and merged over the outer payload.
    """
    key = "spokenText" if "spokenText" in data else "spoken_text"
    raw = data.get(key)
    if not isinstance(raw, str):
        return data
    decoded = _decode_embedded_schema(raw)
    if decoded is None:
        return data

    logger.warning("Interpretation returned its schema as spoken text; merging decoded fields")
    merged = {k: v for k, v in data.items() if k != key}
    spoken = next(decoded[k] for k in _RESPONSE_KEYS if isinstance(decoded.get(k), str))
    for k, v in decoded.items():
        if k in _RESPONSE_KEYS:
            continue
        merged[k] = v
    merged["spokenText"] = spoken
    return merged


class Interpretation(_WireModel):
    """Output of the interpretation (chat) collaborator."""

    spoken_text: str = ""
    should_search: bool = False
    search_terms: list[str] = Field(default_factory=list)
    should_stop: bool = False
    session_id: str | None = None
    audio: SynthesizedAudio | None = None

    @model_validator(mode="before")
    @classmethod
    def _normalize(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return normalize_interpretation_payload(data)
        return data

    @field_validator("search_terms", mode="before")
    @classmethod
    def _coerce_terms(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return [v] if v.strip() else []
        return v


class InterpretationRequest(_WireModel):
    """Input to the interpretation collaborator.

    Exactly one of ``text`` or ``audio`` is set; ``audio`` is used in
    voice-native mode where the chat backend receives the raw capture.
    """

    session_id: str
    language: str = "en"
    include_audio: bool = True
    text: str | None = None
    audio: bytes | None = None
    mime_type: str | None = None

    @model_validator(mode="after")
    def _exactly_one_input(self) -> InterpretationRequest:
        if (self.text is None) == (self.audio is None):
            raise ValueError("InterpretationRequest needs exactly one of text or audio")
        return self


class Location(BaseModel):
    lat: float = 25.2855
    lon: float = 51.5314


class SearchRequest(_WireModel):
    """Input to the search collaborator."""

    terms: list[str]
    location: Location = Field(default_factory=Location)
    locale: str = "en"
    platforms: list[str] = Field(default_factory=list)
    sort: str = "price"
    page: int = 1
    price_min: float | None = None
    price_max: float | None = None
    time_min: int | None = None
    time_max: int | None = None
    restaurant_filter: str = ""
    group_by_restaurant: bool = False
    include_audio: bool = True

    @property
    def term(self) -> str:
        """Terms joined into the single query string the backend expects."""
        return " ".join(t.strip() for t in self.terms if t.strip())


class Pagination(BaseModel):
    """Pagination metadata as returned by the search backend (snake_case)."""

    current_page: int = 1
    total_pages: int = 1
    total_products: int | None = None
    has_next: bool = False
    has_prev: bool = False


class SearchResults(BaseModel):
    """Output of the search collaborator."""

    model_config = ConfigDict(populate_by_name=True)

    products: list[dict[str, Any]] = Field(default_factory=list)
    pagination: Pagination | None = None
    all_restaurants: list[Any] = Field(default_factory=list)
    summary: str | None = None
    audio: SynthesizedAudio | None = None

    @property
    def total(self) -> int:
        """Total matches, preferring the backend's count over the page size."""
        if self.pagination is not None and self.pagination.total_products is not None:
            return self.pagination.total_products
        return len(self.products)
