"""talkloop -- Hands-free food search assistant with local mic/speakers.

Captures speech from the default microphone, stops listening after
1.5 s of silence, sends the utterance to the chat backend, runs searches
it asks for and speaks the answer. The conversation keeps re-listening
until the backend ends it or you press Enter.

Prerequisites:
    pip install talkloop[local-audio]

Environment variables:
    TALKLOOP_BACKEND_URL  Base URL of the backend (default http://localhost:3000)
    TALKLOOP_API_KEY      Optional bearer token

Run with:
    uv run python examples/voice_assistant_local.py

Press Enter to start or interrupt, Ctrl+C to quit.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys

from talkloop import (
    BackendConfig,
    ControllerConfig,
    HTTPInterpretationService,
    HTTPSearchService,
    HTTPTranscriptionService,
    HTTPTranslationService,
    LevelEvent,
    PhaseChangedEvent,
    Pyttsx3Synthesizer,
    ResultsEvent,
    SoundDeviceSink,
    SoundDeviceSource,
    SpeechPlayback,
    TranscriptEvent,
    TurnController,
    TurnErrorEvent,
)
from talkloop.services.http import BackendClient

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(message)s")
logger = logging.getLogger("examples.voice_assistant_local")


def _meter(level: float, width: int = 30) -> str:
    filled = int(level * width)
    return "[" + "#" * filled + "." * (width - filled) + "]"


async def _read_enter() -> None:
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, sys.stdin.readline)


async def main() -> None:
    config = BackendConfig(
        base_url=os.environ.get("TALKLOOP_BACKEND_URL", "http://localhost:3000"),
        api_key=os.environ.get("TALKLOOP_API_KEY") or None,
    )
    # One connection pool for every collaborator.
    client = BackendClient(config)
    playback = SpeechPlayback(SoundDeviceSink(), Pyttsx3Synthesizer())

    controller = TurnController(
        source=SoundDeviceSource(),
        playback=playback,
        transcription=HTTPTranscriptionService(client=client),
        interpretation=HTTPInterpretationService(client=client),
        search=HTTPSearchService(client=client),
        translation=HTTPTranslationService(client=client),
        config=ControllerConfig(greet_on_first_activation=True),
    )

    def on_phase(event: PhaseChangedEvent) -> None:
        print(f"\n== {event.current.upper()}")

    def on_level(event: LevelEvent) -> None:
        print(f"\r{_meter(event.level)}", end="", flush=True)

    def on_transcript(event: TranscriptEvent) -> None:
        print(f"\nYou ({event.language or '?'}): {event.text}")

    def on_results(event: ResultsEvent) -> None:
        for product in event.products[:5]:
            print(f"  - {product.get('name', '?')}  {product.get('price', '')}")

    def on_error(event: TurnErrorEvent) -> None:
        print(f"\n!! {event.kind}: {event.message}")

    controller.on_phase_change(on_phase)
    controller.on_level(on_level)
    controller.on_transcript(on_transcript)
    controller.on_results(on_results)
    controller.on_error(on_error)

    print("Press Enter to talk (Enter again to interrupt).")
    try:
        while True:
            await _read_enter()
            controller.activate()
    except (KeyboardInterrupt, asyncio.CancelledError):
        pass
    finally:
        await controller.close()
        await playback.close()
        await client.close()
        logger.info("Bye")


if __name__ == "__main__":
    asyncio.run(main())
