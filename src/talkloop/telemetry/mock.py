"""Mock telemetry provider that records turns, their phases and metrics."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from talkloop.telemetry.base import Attr, Span, SpanKind, TelemetryProvider


@dataclass
class RecordedMetric:
    name: str
    value: float
    unit: str = ""
    attributes: dict[str, Any] = field(default_factory=dict)


class MockTelemetryProvider(TelemetryProvider):
    """Records spans and metrics so tests can assert on whole turns.

    Phase spans are children of their turn span and never overlap, so
    :meth:`phases` lists them in the order the turn went through them.

    Example::

        telemetry = MockTelemetryProvider()
        controller = TurnController(..., telemetry=telemetry)
        # ... run a turn ...
        turn = telemetry.turns()[0]
        assert telemetry.phases(turn) == ["listening", "transcribing", "interpreting", "speaking"]
        assert telemetry.open_spans == []
    """

    def __init__(self) -> None:
        self._open: dict[str, Span] = {}
        self.spans: list[Span] = []
        self.metrics: list[RecordedMetric] = []

    @property
    def name(self) -> str:
        return "mock"

    @property
    def open_spans(self) -> list[Span]:
        """Spans started but not yet ended."""
        return list(self._open.values())

    def get_spans(self, kind: SpanKind) -> list[Span]:
        """Completed spans of *kind*, in the order they ended."""
        return [s for s in self.spans if s.kind == kind]

    def turns(self, *, status: str | None = None) -> list[Span]:
        """Completed turn spans, optionally only those ending with *status*."""
        return [
            s
            for s in self.get_spans(SpanKind.TURN)
            if status is None or s.status == status
        ]

    def phase_spans(self, turn: Span) -> list[Span]:
        return [s for s in self.spans if s.parent_id == turn.id]

    def phases(self, turn: Span) -> list[str]:
        """Names of the phases *turn* went through, in order."""
        return [str(s.attributes.get(Attr.PHASE, s.kind)) for s in self.phase_spans(turn)]

    def metric_values(self, name: str) -> list[float]:
        return [m.value for m in self.metrics if m.name == name]

    def start_span(
        self,
        kind: SpanKind,
        name: str,
        *,
        parent_id: str | None = None,
        attributes: dict[str, Any] | None = None,
        session_id: str | None = None,
    ) -> str:
        span = Span(
            kind=kind,
            name=name,
            parent_id=parent_id,
            attributes=dict(attributes or {}),
            session_id=session_id,
        )
        self._open[span.id] = span
        return span.id

    def end_span(
        self,
        span_id: str,
        *,
        status: str = "ok",
        error_message: str | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        span = self._open.pop(span_id, None)
        if span is None:
            return
        span.end_time = datetime.now(UTC)
        span.status = status
        span.error_message = error_message
        span.attributes.update(attributes or {})
        self.spans.append(span)

    def set_attribute(self, span_id: str, key: str, value: Any) -> None:
        span = self._open.get(span_id)
        if span is not None:
            span.attributes[key] = value

    def record_metric(
        self,
        name: str,
        value: float,
        *,
        unit: str = "",
        attributes: dict[str, Any] | None = None,
    ) -> None:
        self.metrics.append(RecordedMetric(name, value, unit, dict(attributes or {})))
