"""Telemetry provider system for talkloop."""

from talkloop.telemetry.base import Attr, Span, SpanKind, TelemetryProvider
from talkloop.telemetry.mock import MockTelemetryProvider, RecordedMetric
from talkloop.telemetry.noop import NoopTelemetryProvider

__all__ = [
    "Attr",
    "MockTelemetryProvider",
    "NoopTelemetryProvider",
    "RecordedMetric",
    "Span",
    "SpanKind",
    "TelemetryProvider",
]
