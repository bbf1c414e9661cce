"""Playback sink and local synthesizer ABCs."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import StrEnum, unique


@dataclass
class PlaybackConfig:
    """Configuration for speech playback."""

    settle_timeout_s: float = 15.0
    """Upper bound on how long one utterance may take to settle."""

    silent_sample_rate: int = 16000
    """Sample rate of the silent payload used to keep the sink warm."""


@unique
class PlaybackOutcome(StrEnum):
    """How a :meth:`SpeechPlayback.speak` call settled."""

    PLAYED = "played"
    """Pre-synthesized audio played through the sink."""

    SYNTHESIZED = "synthesized"
    """Spoken by the local synthesizer."""

    STOPPED = "stopped"
    """Interrupted by ``stop()`` or a newer utterance."""

    TIMED_OUT = "timed_out"
    """Did not settle within the safety timeout."""

    FAILED = "failed"
    """Nothing could be played (no usable audio and no synthesizer)."""


@dataclass(frozen=True)
class PlaybackRequest:
    """One utterance: pre-synthesized audio, plain text, or both.

    When both are present the audio is preferred and the text is kept for
    the local fallback path.
    """

    text: str = ""
    audio: bytes | None = None
    content_type: str | None = None
    language: str = "en"

    def __post_init__(self) -> None:
        if not self.audio and not self.text.strip():
            raise ValueError("PlaybackRequest needs audio bytes or text")

    @property
    def has_audio(self) -> bool:
        return bool(self.audio)


@dataclass(frozen=True)
class Voice:
    """A voice offered by a local synthesizer."""

    id: str
    name: str = ""
    languages: tuple[str, ...] = field(default_factory=tuple)


def _normalize_lang(lang: str) -> str:
    return lang.replace("_", "-").lower()


def select_voice(voices: Sequence[Voice], language: str) -> Voice | None:
    """Pick the voice best matching *language*.

    Preference order: exact regional form (``ar`` matches ``ar-AR``), any
    voice for the language, ``en-US``, any English voice, the first voice.
    """
    if not voices:
        return None
    code = _normalize_lang(language).split("-")[0]
    regional = f"{code}-{code}"

    def _matches(voice: Voice, predicate: str, *, exact: bool) -> bool:
        for lang in voice.languages:
            norm = _normalize_lang(lang)
            if (norm == predicate) if exact else norm.startswith(predicate):
                return True
        return False

    for predicate, exact in ((regional, True), (code, False), ("en-us", True), ("en", False)):
        for voice in voices:
            if _matches(voice, predicate, exact=exact):
                return voice
    return voices[0]


class AudioSink(ABC):
    """A persistent output element for pre-synthesized audio.

    The same sink is reused for every utterance of a session. ``load``
    replaces the current payload; ``play`` resolves when it has ended.
    """

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    def load(self, data: bytes, content_type: str) -> None:
        """Decode *data* and make it the current payload.

        Raises:
            PlaybackDecodeError: The payload cannot be decoded.
        """
        ...

    @abstractmethod
    async def play(self) -> None:
        """Play the current payload until it ends.

        Raises:
            PlaybackError: The device failed during playback.
        """
        ...

    @abstractmethod
    def pause(self) -> None:
        """Silence output immediately."""
        ...

    @abstractmethod
    def rewind(self) -> None:
        """Move back to the start of the current payload."""
        ...

    async def close(self) -> None:  # noqa: B027
        """Release resources. Override in subclasses if needed."""


class LocalSynthesizer(ABC):
    """On-device text-to-speech used when no pre-synthesized audio is usable."""

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    async def speak(self, text: str, language: str) -> None:
        """Speak *text* and resolve when finished or cancelled."""
        ...

    @abstractmethod
    def cancel(self) -> None:
        """Stop the current utterance, if any."""
        ...

    def voices(self) -> list[Voice]:
        """Voices available on this device."""
        return []

    async def close(self) -> None:  # noqa: B027
        """Release resources. Override in subclasses if needed."""
