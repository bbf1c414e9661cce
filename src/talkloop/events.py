"""Observation events delivered to ``TurnController.on_*`` callbacks."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from talkloop.models.enums import ErrorKind, Phase


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class PhaseChangedEvent:
    """Phase transition of the active turn (or of the idle controller)."""

    session_id: str
    previous: Phase
    current: Phase
    turn_id: str | None = None
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class LevelEvent:
    """Smoothed loudness in ``[0, 1]`` for live UI feedback."""

    session_id: str
    level: float
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class TranscriptEvent:
    session_id: str
    turn_id: str
    text: str
    language: str | None = None
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class ResponseEvent:
    """Text about to be spoken (interpretation reply, summary, or greeting)."""

    session_id: str
    turn_id: str
    text: str
    source: str = "interpretation"
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class ResultsEvent:
    session_id: str
    turn_id: str
    terms: tuple[str, ...]
    products: tuple[dict[str, Any], ...]
    total: int
    page: int = 1
    timestamp: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class TurnErrorEvent:
    """A turn failed and the controller entered the Error phase."""

    session_id: str
    turn_id: str
    kind: ErrorKind | None
    message: str
    timestamp: datetime = field(default_factory=_now)
