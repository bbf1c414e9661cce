"""Exception taxonomy for talkloop."""

from __future__ import annotations

from talkloop.models.enums import ErrorKind


class TalkLoopError(Exception):
    """Base exception for all talkloop errors."""

    kind: ErrorKind | None = None


class PermissionDeniedError(TalkLoopError):
    """Microphone access was refused. Terminal for the turn."""

    kind = ErrorKind.PERMISSION_DENIED


class ServiceError(TalkLoopError):
    """A remote collaborator failed. Never retried within a turn."""


class TranscriptionError(ServiceError):
    kind = ErrorKind.TRANSCRIPTION


class InterpretationError(ServiceError):
    kind = ErrorKind.INTERPRETATION


class SearchError(ServiceError):
    kind = ErrorKind.SEARCH


class TranslationError(ServiceError):
    """Translation failed. Callers keep the untranslated text."""


class PlaybackError(TalkLoopError):
    kind = ErrorKind.PLAYBACK


class PlaybackDecodeError(PlaybackError):
    """The sink could not decode the supplied audio payload."""


class TurnCancelledError(TalkLoopError):
    """The owning turn was cancelled. Never surfaced as an Error phase."""

    kind = ErrorKind.CANCELLED


class ControllerNotConfiguredError(TalkLoopError):
    """A required collaborator is missing."""
