"""talkloop -- Scripted conversation without audio hardware or a backend.

Runs two turns against mock collaborators: the first searches for pizza,
the second ends the conversation. Useful for seeing the phase sequence,
the spoken summaries and the per-turn telemetry a real session produces.

Run with:
    uv run python examples/mock_conversation.py
"""

from __future__ import annotations

import asyncio
import logging

from talkloop import (
    ControllerConfig,
    EnergyMonitorConfig,
    Interpretation,
    MockAudioSink,
    MockAudioSource,
    MockInterpretationService,
    MockSearchService,
    MockSynthesizer,
    MockTelemetryProvider,
    MockTranscriptionService,
    MockTranslationService,
    Phase,
    PhaseChangedEvent,
    ResponseEvent,
    SearchResults,
    SpeechPlayback,
    Transcript,
    TurnController,
)

logging.basicConfig(level=logging.INFO, format="%(name)s %(message)s")

# (loudness, seconds): half a second of speech, then silence.
UTTERANCE = [(0.6, 0.5), (0.0, 0.6)]


async def main() -> None:
    source = MockAudioSource([UTTERANCE, UTTERANCE])
    telemetry = MockTelemetryProvider()
    done = asyncio.Event()

    controller = TurnController(
        source=source,
        playback=SpeechPlayback(MockAudioSink(), MockSynthesizer(speak_duration=0.3)),
        transcription=MockTranscriptionService(
            [Transcript(text="pizza near me", language="en"), Transcript(text="thanks, bye")]
        ),
        interpretation=MockInterpretationService(
            [
                Interpretation(should_search=True, search_terms=["pizza"]),
                Interpretation(spoken_text="Enjoy your meal!", should_stop=True),
            ]
        ),
        search=MockSearchService(
            [SearchResults(products=[{"name": "Margherita"}, {"name": "Pepperoni"}])]
        ),
        translation=MockTranslationService(),
        config=ControllerConfig(announce_search=True),
        monitor_config=EnergyMonitorConfig(min_speech_ms=200, silence_ms=400),
        telemetry=telemetry,
    )

    def on_phase(event: PhaseChangedEvent) -> None:
        print(f"phase: {event.previous} -> {event.current}")
        if event.current == Phase.IDLE and not controller.session.active:
            done.set()

    def on_response(event: ResponseEvent) -> None:
        print(f"assistant ({event.source}): {event.text}")

    controller.on_phase_change(on_phase)
    controller.on_response(on_response)

    controller.activate()
    await asyncio.wait_for(done.wait(), timeout=10)
    await controller.close()

    for turn in telemetry.turns():
        phases = " -> ".join(telemetry.phases(turn))
        print(f"turn {turn.status:<10} {turn.duration_ms or 0:>5.0f} ms  {phases}")


if __name__ == "__main__":
    asyncio.run(main())
