"""Shared test fixtures and helpers."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Coroutine
from dataclasses import dataclass, field
from typing import Any

import pytest

from talkloop.core.controller import ControllerConfig, TurnController
from talkloop.events import PhaseChangedEvent, TurnErrorEvent
from talkloop.models.enums import Phase
from talkloop.models.messages import Interpretation, SearchResults, Transcript
from talkloop.services.mock import (
    MockInterpretationService,
    MockSearchService,
    MockSynthesisService,
    MockTranscriptionService,
    MockTranslationService,
)
from talkloop.telemetry.mock import MockTelemetryProvider
from talkloop.voice.capture.base import CaptureConfig
from talkloop.voice.capture.mock import LoudnessTrace, MockAudioSource
from talkloop.voice.monitor import EnergyMonitorConfig
from talkloop.voice.playback.mock import MockAudioSink, MockSynthesizer
from talkloop.voice.playback.speech import SpeechPlayback

# 100 ms of speech then 300 ms of silence, against the scaled thresholds below.
SPEECH_TRACE: LoudnessTrace = [(0.5, 0.1), (0.0, 0.3)]

FAST_MONITOR = EnergyMonitorConfig(
    min_speech_ms=40, silence_ms=150, tick_interval_s=0.005, smoothing=0.0
)


@pytest.fixture
def advance() -> Callable[[int], Coroutine[Any, Any, None]]:
    """Yield control to let pending tasks run without real delay.

    Replaces ``await asyncio.sleep(0.05)`` patterns with zero-delay
    event loop yields::

        await advance()       # 5 yields (default)
        await advance(10)     # 10 yields for heavier workloads
    """

    async def _advance(n: int = 5) -> None:
        for _ in range(n):
            await asyncio.sleep(0)

    return _advance


@pytest.fixture
def wait_until() -> Callable[..., Coroutine[Any, Any, None]]:
    """Poll *predicate* until it holds, failing the test after *timeout* seconds."""

    async def _wait_until(predicate: Callable[[], bool], timeout: float = 3.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                pytest.fail("condition not reached before timeout")
            await asyncio.sleep(0.005)

    return _wait_until


@pytest.fixture
def make_results() -> Callable[..., SearchResults]:
    """Build search results with *n* products and optional total or summary."""

    def _make(n: int, *, total: int | None = None, summary: str | None = None) -> SearchResults:
        products = [{"id": f"p{i}", "name": f"Product {i}", "price": 10 + i} for i in range(n)]
        pagination: dict[str, Any] | None = None
        if total is not None:
            pagination = {"current_page": 1, "total_pages": 1, "total_products": total}
        return SearchResults.model_validate(
            {"products": products, "pagination": pagination, "summary": summary}
        )

    return _make


@dataclass
class Harness:
    """A controller wired to mocks, plus the recorded observations."""

    controller: TurnController
    source: MockAudioSource
    sink: MockAudioSink
    synthesizer: MockSynthesizer
    playback: SpeechPlayback
    transcription: MockTranscriptionService
    interpretation: MockInterpretationService
    search: MockSearchService
    translation: MockTranslationService
    synthesis: MockSynthesisService | None
    telemetry: MockTelemetryProvider
    phases: list[Phase] = field(default_factory=list)
    errors: list[TurnErrorEvent] = field(default_factory=list)


@pytest.fixture
async def harness_factory() -> AsyncIterator[Callable[..., Harness]]:
    """Build controllers wired to mocks; every controller is closed on teardown."""
    built: list[Harness] = []

    def _build(
        *,
        traces: list[LoudnessTrace] | None = None,
        transcripts: list[Transcript] | None = None,
        interpretations: list[Interpretation] | None = None,
        results: list[SearchResults] | None = None,
        config: ControllerConfig | None = None,
        sink: MockAudioSink | None = None,
        with_synthesis: bool = False,
        with_transcription: bool = True,
        permission_denied: bool = False,
        monitor_config: EnergyMonitorConfig | None = None,
        capture_config: CaptureConfig | None = None,
    ) -> Harness:
        source = MockAudioSource(
            traces if traces is not None else [SPEECH_TRACE],
            config=capture_config,
            permission_denied=permission_denied,
        )
        sink = sink or MockAudioSink(play_duration=0.02)
        synthesizer = MockSynthesizer(speak_duration=0.02)
        playback = SpeechPlayback(sink, synthesizer)
        transcription = MockTranscriptionService(transcripts)
        interpretation = MockInterpretationService(interpretations)
        search = MockSearchService(results)
        translation = MockTranslationService()
        synthesis = MockSynthesisService() if with_synthesis else None
        telemetry = MockTelemetryProvider()
        controller = TurnController(
            source=source,
            playback=playback,
            transcription=transcription if with_transcription else None,
            interpretation=interpretation,
            search=search,
            translation=translation,
            synthesis=synthesis,
            config=config or ControllerConfig(echo_guard_s=0.01, error_revert_delay_s=0.05),
            monitor_config=monitor_config or FAST_MONITOR,
            telemetry=telemetry,
        )
        harness = Harness(
            controller=controller,
            source=source,
            sink=sink,
            synthesizer=synthesizer,
            playback=playback,
            transcription=transcription,
            interpretation=interpretation,
            search=search,
            translation=translation,
            synthesis=synthesis,
            telemetry=telemetry,
        )

        def _record_phase(event: PhaseChangedEvent) -> None:
            harness.phases.append(event.current)

        controller.on_phase_change(_record_phase)
        controller.on_error(harness.errors.append)
        built.append(harness)
        return harness

    yield _build

    for harness in built:
        await harness.controller.close()
