"""Mock playback sink and synthesizer for testing."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from talkloop.core.errors import PlaybackDecodeError
from talkloop.voice.playback.base import AudioSink, LocalSynthesizer, Voice, select_voice


@dataclass
class MockPlaybackCall:
    """Record of a call made to a mock sink or synthesizer."""

    method: str
    args: dict[str, Any] = field(default_factory=dict)


class MockAudioSink(AudioSink):
    """Sink that "plays" payloads by sleeping.

    Args:
        play_duration: Seconds each non-silent payload takes to play.
        fail_decode: Reject every non-silent payload with
            :class:`PlaybackDecodeError`.
        hang: Never finish playing (exercises the settle timeout).
    """

    def __init__(
        self,
        *,
        play_duration: float = 0.0,
        fail_decode: bool = False,
        hang: bool = False,
    ) -> None:
        self.play_duration = play_duration
        self.fail_decode = fail_decode
        self.hang = hang
        self.calls: list[MockPlaybackCall] = []
        self.played: list[bytes] = []
        self.audible = False
        self.closed = False
        self._current: bytes = b""
        self._content_type = ""
        self._stopped: asyncio.Event | None = None

    def load(self, data: bytes, content_type: str) -> None:
        self.calls.append(MockPlaybackCall(method="load", args={"content_type": content_type}))
        silent = content_type == "audio/wav" and len(data) <= 44
        if self.fail_decode and not silent:
            raise PlaybackDecodeError(f"cannot decode {content_type}")
        self._current = data
        self._content_type = content_type

    async def play(self) -> None:
        self.calls.append(MockPlaybackCall(method="play"))
        data = self._current
        if len(data) <= 44:
            return
        self.played.append(data)
        self.audible = True
        self._stopped = stopped = asyncio.Event()
        try:
            if self.hang:
                await stopped.wait()
            else:
                await asyncio.wait_for(stopped.wait(), timeout=self.play_duration)
        except TimeoutError:
            pass
        finally:
            if self._stopped is stopped:
                self.audible = False
                self._stopped = None

    def pause(self) -> None:
        self.calls.append(MockPlaybackCall(method="pause"))
        self.audible = False
        if self._stopped is not None:
            self._stopped.set()

    def rewind(self) -> None:
        self.calls.append(MockPlaybackCall(method="rewind"))

    async def close(self) -> None:
        self.calls.append(MockPlaybackCall(method="close"))
        self.closed = True

    @property
    def method_names(self) -> list[str]:
        return [c.method for c in self.calls]


class MockSynthesizer(LocalSynthesizer):
    """Synthesizer that records utterances and sleeps for ``speak_duration``."""

    def __init__(
        self,
        *,
        speak_duration: float = 0.0,
        voices: list[Voice] | None = None,
    ) -> None:
        self.speak_duration = speak_duration
        self._voices = voices or [Voice(id="mock-en", name="Mock", languages=("en-US",))]
        self.calls: list[MockPlaybackCall] = []
        self.spoken: list[tuple[str, str]] = []
        self.speaking = False
        self.closed = False
        self._done: asyncio.Event | None = None

    def voices(self) -> list[Voice]:
        return list(self._voices)

    async def speak(self, text: str, language: str) -> None:
        voice = select_voice(self._voices, language)
        self.calls.append(
            MockPlaybackCall(
                method="speak",
                args={"text": text, "language": language, "voice": voice.id if voice else None},
            )
        )
        self.spoken.append((text, language))
        self.speaking = True
        self._done = done = asyncio.Event()
        try:
            await asyncio.wait_for(done.wait(), timeout=self.speak_duration)
        except TimeoutError:
            pass
        finally:
            if self._done is done:
                self.speaking = False
                self._done = None

    def cancel(self) -> None:
        self.calls.append(MockPlaybackCall(method="cancel"))
        self.speaking = False
        if self._done is not None:
            self._done.set()

    async def close(self) -> None:
        self.calls.append(MockPlaybackCall(method="close"))
        self.closed = True
