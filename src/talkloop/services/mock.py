"""Mock collaborators for testing.

Every mock records its inputs in ``calls``, returns scripted responses in
order (repeating the last one), and can be told to fail or to block until
released, which lets tests cancel a turn mid-request.
"""

from __future__ import annotations

import asyncio
from typing import Any

from talkloop.core.errors import (
    InterpretationError,
    SearchError,
    ServiceError,
    TranscriptionError,
    TranslationError,
)
from talkloop.models.messages import (
    Interpretation,
    InterpretationRequest,
    SearchRequest,
    SearchResults,
    SynthesizedAudio,
    Transcript,
)
from talkloop.services.base import (
    InterpretationService,
    SearchService,
    SynthesisService,
    TranscriptionService,
    TranslationService,
)
from talkloop.voice.capture.base import AudioBuffer


class _Scripted[T]:
    def __init__(self, responses: list[T], error: type[ServiceError]) -> None:
        self.responses = responses
        self.fail = False
        self.delay = 0.0
        self.gate: asyncio.Event | None = None
        self.entered = asyncio.Event()
        self.completed = 0
        self._error = error
        self._index = 0

    def block(self) -> asyncio.Event:
        """Hold the next calls until the returned event is set."""
        self.gate = asyncio.Event()
        return self.gate

    async def next(self) -> T:
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise self._error("mock failure")
        response = self.responses[min(self._index, len(self.responses) - 1)]
        self._index += 1
        self.completed += 1
        return response


class MockTranscriptionService(TranscriptionService):
    def __init__(self, transcripts: list[Transcript] | None = None) -> None:
        self._script = _Scripted(
            transcripts or [Transcript(text="hello", language="en")], TranscriptionError
        )
        self.calls: list[AudioBuffer] = []

    @property
    def script(self) -> _Scripted[Transcript]:
        return self._script

    async def transcribe(self, buffer: AudioBuffer) -> Transcript:
        self.calls.append(buffer)
        return await self._script.next()


class MockInterpretationService(InterpretationService):
    def __init__(
        self,
        responses: list[Interpretation] | None = None,
        *,
        greeting: Interpretation | None = None,
    ) -> None:
        self._script = _Scripted(
            responses or [Interpretation(spoken_text="How can I help?")], InterpretationError
        )
        self.greeting = greeting or Interpretation(spoken_text="Hi! What are you craving today?")
        self.calls: list[InterpretationRequest] = []
        self.greet_calls: list[dict[str, Any]] = []

    @property
    def script(self) -> _Scripted[Interpretation]:
        return self._script

    async def interpret(self, request: InterpretationRequest) -> Interpretation:
        self.calls.append(request)
        return await self._script.next()

    async def greet(
        self, session_id: str, language: str, *, include_audio: bool = True
    ) -> Interpretation:
        self.greet_calls.append(
            {"session_id": session_id, "language": language, "include_audio": include_audio}
        )
        if self._script.fail:
            raise InterpretationError("mock failure")
        return self.greeting


class MockSearchService(SearchService):
    def __init__(self, results: list[SearchResults] | None = None) -> None:
        self._script = _Scripted(results or [SearchResults()], SearchError)
        self.calls: list[SearchRequest] = []

    @property
    def script(self) -> _Scripted[SearchResults]:
        return self._script

    async def search(self, request: SearchRequest) -> SearchResults:
        self.calls.append(request)
        return await self._script.next()


class MockTranslationService(TranslationService):
    """Prefixes text with ``[lang]`` instead of translating it."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.fail = False

    async def translate(self, text: str, language: str) -> str:
        self.calls.append((text, language))
        if self.fail:
            raise TranslationError("mock failure")
        return f"[{language}] {text}"


class MockSynthesisService(SynthesisService):
    def __init__(self, *, content_type: str = "audio/wav") -> None:
        self.calls: list[tuple[str, str]] = []
        self.fail = False
        self.content_type = content_type

    async def synthesize(self, text: str, language: str) -> SynthesizedAudio:
        self.calls.append((text, language))
        if self.fail:
            raise ServiceError("mock failure")
        return SynthesizedAudio(data=b"\x01\x00" * 400, content_type=self.content_type)
