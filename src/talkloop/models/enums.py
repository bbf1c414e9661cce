"""All string enums for talkloop."""

from __future__ import annotations

from enum import StrEnum, unique


@unique
class Phase(StrEnum):
    """Stage of the active turn. ``IDLE`` when no turn is running."""

    IDLE = "idle"
    LISTENING = "listening"
    TRANSCRIBING = "transcribing"
    INTERPRETING = "interpreting"
    SEARCHING = "searching"
    SPEAKING = "speaking"
    ERROR = "error"


@unique
class ErrorKind(StrEnum):
    PERMISSION_DENIED = "permission_denied"
    EMPTY_CAPTURE = "empty_capture"
    TRANSCRIPTION = "transcription"
    INTERPRETATION = "interpretation"
    SEARCH = "search"
    PLAYBACK = "playback"
    CANCELLED = "cancelled"
