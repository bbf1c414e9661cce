"""Telemetry provider ABC, Span dataclass, SpanKind enum, and Attr constants."""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class SpanKind(StrEnum):
    """Span classifications for telemetry."""

    TURN = "turn"
    CAPTURE = "capture"
    STT_TRANSCRIBE = "stt.transcribe"
    CHAT_INTERPRET = "chat.interpret"
    SEARCH = "search"
    TTS_PLAYBACK = "tts.playback"
    CUSTOM = "custom"


class Attr:
    """Well-known attribute key constants for telemetry spans and metrics."""

    SESSION_ID = "session_id"
    TURN_ID = "turn_id"
    TURN_KIND = "turn.kind"
    PHASE = "phase"
    LANGUAGE = "language"

    # Timing
    DURATION_MS = "duration_ms"

    # Capture
    CAPTURE_BYTES = "capture.bytes"
    CAPTURE_DURATION_MS = "capture.duration_ms"

    # STT
    STT_TEXT_LENGTH = "stt.text_length"

    # Interpretation
    CHAT_SHOULD_SEARCH = "chat.should_search"
    CHAT_SHOULD_STOP = "chat.should_stop"

    # Search
    SEARCH_TERMS = "search.terms"
    SEARCH_RESULT_COUNT = "search.result_count"
    SEARCH_PAGE = "search.page"

    # Playback
    TTS_SOURCE = "tts.source"

    # Errors
    ERROR_KIND = "error.kind"


@dataclass
class Span:
    """Represents a telemetry span."""

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:16])
    kind: SpanKind = SpanKind.CUSTOM
    name: str = ""
    parent_id: str | None = None
    attributes: dict[str, Any] = field(default_factory=dict)
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    status: str = "ok"
    error_message: str | None = None
    session_id: str | None = None

    @property
    def duration_ms(self) -> float | None:
        """Duration in milliseconds, or None if not yet ended."""
        if self.end_time is None:
            return None
        delta = self.end_time - self.start_time
        return delta.total_seconds() * 1000


class TelemetryProvider(ABC):
    """Abstract base class for telemetry providers.

    Providers collect span and metric data from the turn controller.
    The default ``NoopTelemetryProvider`` has zero overhead.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name for identification."""
        ...

    @abstractmethod
    def start_span(
        self,
        kind: SpanKind,
        name: str,
        *,
        parent_id: str | None = None,
        attributes: dict[str, Any] | None = None,
        session_id: str | None = None,
    ) -> str:
        """Start a new telemetry span.

        Returns:
            A unique span ID string.
        """
        ...

    @abstractmethod
    def end_span(
        self,
        span_id: str,
        *,
        status: str = "ok",
        error_message: str | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        """End a previously started span."""
        ...

    @abstractmethod
    def set_attribute(self, span_id: str, key: str, value: Any) -> None:
        """Set an attribute on an active span."""
        ...

    @abstractmethod
    def record_metric(
        self,
        name: str,
        value: float,
        *,
        unit: str = "",
        attributes: dict[str, Any] | None = None,
    ) -> None:
        """Record a metric value."""
        ...
