"""TurnController: the conversation turn-taking state machine.

One :class:`Turn` is active at a time. Each turn listens until the energy
monitor detects the end of speech, transcribes and interprets the
utterance, optionally searches, speaks the response, and then (while the
session is active) re-arms listening after a short echo guard. Every
await inside a turn goes through the turn's :class:`CancellationToken`,
so cancelling stops the whole call chain and drops late results.

Typed queries and results-page changes run as search-only turns under
the same exclusivity and cancellation rules.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import partial
from typing import Any

from talkloop.core.errors import (
    ControllerNotConfiguredError,
    PermissionDeniedError,
    ServiceError,
    TranslationError,
    TurnCancelledError,
)
from talkloop.core.summary import (
    clean_for_speech,
    compose_results_summary,
    compose_search_announcement,
)
from talkloop.events import (
    LevelEvent,
    PhaseChangedEvent,
    ResponseEvent,
    ResultsEvent,
    TranscriptEvent,
    TurnErrorEvent,
)
from talkloop.models.enums import Phase
from talkloop.models.messages import InterpretationRequest, SynthesizedAudio
from talkloop.models.session import ConversationSession, Turn
from talkloop.services.base import (
    InterpretationService,
    SearchService,
    SynthesisService,
    TranscriptionService,
    TranslationService,
)
from talkloop.telemetry.base import Attr, SpanKind, TelemetryProvider
from talkloop.telemetry.noop import NoopTelemetryProvider
from talkloop.voice.capture.base import AudioBuffer, AudioSource, EmptyCapture
from talkloop.voice.monitor import EnergyMonitor, EnergyMonitorConfig
from talkloop.voice.playback.base import PlaybackRequest
from talkloop.voice.playback.speech import SpeechPlayback

logger = logging.getLogger("talkloop.controller")

EventCallback = Callable[[Any], Any]
TurnAction = Callable[[Turn], Awaitable[None]]

_PHASE_SPANS: dict[Phase, SpanKind] = {
    Phase.LISTENING: SpanKind.CAPTURE,
    Phase.TRANSCRIBING: SpanKind.STT_TRANSCRIBE,
    Phase.INTERPRETING: SpanKind.CHAT_INTERPRET,
    Phase.SEARCHING: SpanKind.SEARCH,
    Phase.SPEAKING: SpanKind.TTS_PLAYBACK,
}


@dataclass
class ControllerConfig:
    """Behaviour of the turn-taking controller."""

    echo_guard_s: float = 0.25
    """Delay before re-arming the microphone after playback."""

    error_revert_delay_s: float = 3.0
    """How long the Error phase lasts before returning to Idle."""

    include_audio: bool = True
    """Ask collaborators for pre-synthesized audio."""

    greet_on_first_activation: bool = False
    """Play a greeting from the interpretation service on the first activation."""

    voice_native: bool = False
    """Send the raw capture to interpretation, skipping transcription."""

    default_language: str = "en"
    """Session language until transcription detects another one."""

    announce_search: bool = False
    """Say "Searching for X" before searching when the reply has no spoken text."""


class TurnController:
    """Owns the conversation session and sequences its turns.

    Example::

        controller = TurnController(
            source=SoundDeviceSource(),
            playback=SpeechPlayback(SoundDeviceSink(), Pyttsx3Synthesizer()),
            transcription=HTTPTranscriptionService(config),
            interpretation=HTTPInterpretationService(config),
            search=HTTPSearchService(config),
        )
        controller.on_phase_change(lambda e: print(e.current))
        controller.activate()

    Args:
        source: Microphone capture.
        playback: Speech playback coordinator (owns the output sink).
        interpretation: Chat collaborator.
        transcription: Speech-to-text collaborator. Optional in
            voice-native mode.
        search: Search collaborator. Without it, search directives are
            ignored.
        translation: Translates composed summaries into the session language.
        synthesis: Remote speech synthesis for text-only utterances.
        session: Session to drive; a new one is created when omitted.
        config: Controller behaviour.
        monitor_config: End-of-speech detection settings.
        telemetry: Telemetry provider (no-op by default).
    """

    def __init__(
        self,
        *,
        source: AudioSource,
        playback: SpeechPlayback,
        interpretation: InterpretationService,
        transcription: TranscriptionService | None = None,
        search: SearchService | None = None,
        translation: TranslationService | None = None,
        synthesis: SynthesisService | None = None,
        session: ConversationSession | None = None,
        config: ControllerConfig | None = None,
        monitor_config: EnergyMonitorConfig | None = None,
        telemetry: TelemetryProvider | None = None,
    ) -> None:
        self._config = config or ControllerConfig()
        if transcription is None and not self._config.voice_native:
            raise ControllerNotConfiguredError(
                "A transcription service is required unless voice_native is enabled"
            )
        self._source = source
        self._playback = playback
        self._interpretation = interpretation
        self._transcription = transcription
        self._search = search
        self._translation = translation
        self._synthesis = synthesis
        self._session = session or ConversationSession(language=self._config.default_language)
        self._monitor_config = monitor_config or EnergyMonitorConfig()
        self._telemetry = telemetry or NoopTelemetryProvider()

        self._phase = Phase.IDLE
        self._turn: Turn | None = None
        self._turn_task: asyncio.Task[None] | None = None
        self._relisten_handle: asyncio.TimerHandle | None = None
        self._revert_handle: asyncio.TimerHandle | None = None
        self._scheduled_tasks: set[asyncio.Task[Any]] = set()

        self._phase_callbacks: list[EventCallback] = []
        self._level_callbacks: list[EventCallback] = []
        self._transcript_callbacks: list[EventCallback] = []
        self._response_callbacks: list[EventCallback] = []
        self._results_callbacks: list[EventCallback] = []
        self._error_callbacks: list[EventCallback] = []

    # -------------------------------------------------------------------------
    # Public state
    # -------------------------------------------------------------------------

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def session(self) -> ConversationSession:
        return self._session

    @property
    def config(self) -> ControllerConfig:
        return self._config

    @property
    def current_turn(self) -> Turn | None:
        return self._turn

    @property
    def relisten_pending(self) -> bool:
        return self._relisten_handle is not None

    # -------------------------------------------------------------------------
    # Observation callbacks
    # -------------------------------------------------------------------------

    def on_phase_change(self, callback: EventCallback) -> None:
        """Register a callback receiving :class:`PhaseChangedEvent`."""
        self._phase_callbacks.append(callback)

    def on_level(self, callback: EventCallback) -> None:
        """Register a callback receiving :class:`LevelEvent` on every monitor tick."""
        self._level_callbacks.append(callback)

    def on_transcript(self, callback: EventCallback) -> None:
        self._transcript_callbacks.append(callback)

    def on_response(self, callback: EventCallback) -> None:
        self._response_callbacks.append(callback)

    def on_results(self, callback: EventCallback) -> None:
        self._results_callbacks.append(callback)

    def on_error(self, callback: EventCallback) -> None:
        self._error_callbacks.append(callback)

    # -------------------------------------------------------------------------
    # User actions
    # -------------------------------------------------------------------------

    def activate(self) -> None:
        """Handle the user's activation gesture.

        From Idle this starts a turn and marks the session active. In any
        other phase the gesture cancels instead; two turns never overlap.
        """
        if self._phase != Phase.IDLE:
            logger.info("Activation during %s, cancelling", self._phase)
            self.cancel()
            return

        self._cancel_timers()
        greet = self._config.greet_on_first_activation and not self._session.activated
        self._session.activated = True
        self._session.active = True
        if greet:
            self._start_turn(self._greet, Phase.INTERPRETING, kind="greeting")
        else:
            self._start_turn(self._listen_and_respond, Phase.LISTENING)

    def submit_text(self, text: str) -> None:
        """Search for a typed query without capturing audio.

        The query goes straight to the search collaborator and the result
        summary is spoken (Idle -> Searching -> Speaking). A turn already
        in flight is cancelled first. Blank queries are ignored.
        """
        query = text.strip()
        if not query:
            logger.info("Ignoring blank typed query")
            return
        self._require_search()
        self._supersede()
        self._start_turn(partial(self._run_search, terms=[query]), Phase.SEARCHING, kind="text")

    def search_page(self, page: int) -> None:
        """Re-run the last search for another results page.

        Only the results are refreshed; nothing is spoken.

        Raises:
            ValueError: *page* is below 1 or there is no previous search.
        """
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        topic = list(self._session.last_topic)
        if not topic:
            raise ValueError("No previous search to page through")
        self._require_search()
        self._supersede()
        self._start_turn(
            partial(self._run_search, terms=topic, page=page, speak_summary=False),
            Phase.SEARCHING,
            kind="page",
        )

    def stop_listening(self) -> None:
        """End capture now instead of waiting for the silence trigger.

        A stop that arrives before the microphone is open is remembered
        and applied as soon as capture begins.
        """
        turn = self._turn
        if turn is None or turn.phase != Phase.LISTENING:
            return
        if turn.speech_end is None:
            logger.info("Explicit stop before capture started")
            turn.stop_requested = True
            return
        logger.info("Explicit stop while listening")
        turn.speech_end.set()

    def cancel(self) -> None:
        """Abort the active turn, release its resources and return to Idle.

        Marks the session inactive so no re-listen follows. Never enters
        the Error phase.
        """
        self._session.active = False
        self._cancel_timers()
        turn, self._turn = self._turn, None
        if turn is not None:
            logger.info("Cancelling turn %s during %s", turn.id, turn.phase)
            turn.token.cancel("user")
            if turn.monitor is not None:
                turn.monitor.stop()
            if turn.speaking:
                self._playback.stop()
                turn.speaking = False
            self._end_phase_span(turn, status="cancelled")
        self._session.pending_cancel = None
        self._transition(Phase.IDLE, turn)

    async def close(self) -> None:
        """Cancel everything, wait for cleanup and reset the session."""
        self.cancel()
        task = self._turn_task
        if task is not None and not task.done():
            await asyncio.wait({task})
        pending = [t for t in self._scheduled_tasks if not t.done()]
        for t in pending:
            t.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._playback.reset()
        self._session.reset(language=self._config.default_language)
        logger.info("Controller closed, session reset")

    # -------------------------------------------------------------------------
    # Turn lifecycle
    # -------------------------------------------------------------------------

    def _require_search(self) -> None:
        if self._search is None:
            raise ControllerNotConfiguredError("Searching needs a search service")

    def _supersede(self) -> None:
        """Make room for a new turn: cancel one in flight, or drop a pending re-listen."""
        if self._phase != Phase.IDLE:
            self.cancel()
        else:
            self._cancel_timers()

    def _start_turn(self, action: TurnAction, first_phase: Phase, *, kind: str = "voice") -> Turn:
        turn = Turn()
        self._turn = turn
        self._session.pending_cancel = turn.token
        turn.span_id = self._telemetry.start_span(
            SpanKind.TURN,
            "talkloop.turn",
            session_id=self._session.id,
            attributes={
                Attr.TURN_ID: turn.id,
                Attr.TURN_KIND: kind,
                Attr.LANGUAGE: self._session.language,
            },
        )
        previous = self._turn_task
        logger.info("Turn %s started (%s)", turn.id, kind)
        self._set_phase(turn, first_phase)

        task = asyncio.get_running_loop().create_task(
            self._run_turn(turn, action, previous=previous),
            name=f"talkloop-turn-{turn.id}",
        )
        task.add_done_callback(self._task_done)
        self._turn_task = task
        return turn

    async def _run_turn(
        self, turn: Turn, action: TurnAction, *, previous: asyncio.Task[None] | None
    ) -> None:
        started = time.monotonic()
        status = "ok"
        try:
            # The previous turn must have released the microphone first.
            if previous is not None and not previous.done():
                await turn.token.guard(asyncio.wait({previous}))
            await turn.token.guard(self._playback.unlock())
            await action(turn)
            self._finish(turn)
        except TurnCancelledError:
            status = "cancelled"
            logger.debug("Turn %s cancelled", turn.id)
        except (ServiceError, PermissionDeniedError) as exc:
            status = "error"
            logger.exception("Turn %s failed during %s", turn.id, turn.phase)
            self._fail(turn, exc)
        except Exception as exc:
            status = "error"
            logger.exception("Unexpected error in turn %s", turn.id)
            self._fail(turn, exc)
        finally:
            await self._cleanup(turn)
            duration_ms = (time.monotonic() - started) * 1000
            self._telemetry.end_span(
                turn.span_id or "",
                status=status,
                attributes={Attr.DURATION_MS: duration_ms},
            )
            self._telemetry.record_metric(
                "talkloop.turn.duration_ms",
                duration_ms,
                unit="ms",
                attributes={Attr.SESSION_ID: self._session.id, "status": status},
            )

    async def _greet(self, turn: Turn) -> None:
        session = self._session
        try:
            greeting = await turn.token.guard(
                self._interpretation.greet(
                    session.id, session.language, include_audio=self._include_audio()
                )
            )
        except NotImplementedError:
            logger.warning("%s has no greeting, listening instead", self._interpretation.name)
            await self._listen_and_respond(turn)
            return
        if greeting.session_id:
            session.id = greeting.session_id
        await self._speak(turn, greeting.spoken_text, audio=greeting.audio, source="greeting")

    async def _listen_and_respond(self, turn: Turn) -> None:
        self._set_phase(turn, Phase.LISTENING)
        captured = await self._listen(turn)
        if isinstance(captured, EmptyCapture):
            logger.info("Turn %s captured no audio, returning to Idle", turn.id)
            self._to_idle(turn)
            return
        await self._respond(turn, captured)

    async def _listen(self, turn: Turn) -> AudioBuffer | EmptyCapture:
        token = turn.token
        turn.owns_capture = True
        stream = await token.guard(self._source.open())
        turn.stream = stream

        turn.speech_end = speech_end = asyncio.Event()
        monitor = EnergyMonitor(
            stream.analyser, self._monitor_config, on_level=self._publish_level
        )
        turn.monitor = monitor
        self._source.begin_capture(stream)
        monitor.start(speech_end.set)
        if turn.stop_requested:
            speech_end.set()

        ceiling = self._source.config.max_duration_s
        try:
            await token.guard(asyncio.wait_for(speech_end.wait(), timeout=ceiling))
        except TimeoutError:
            logger.warning("Capture reached the %.0fs ceiling, finalizing", ceiling)
        finally:
            monitor.stop()
            turn.monitor = None

        captured = await token.guard(self._source.finalize())
        turn.stream = None
        if isinstance(captured, AudioBuffer) and turn.phase_span_id:
            self._telemetry.set_attribute(turn.phase_span_id, Attr.CAPTURE_BYTES, captured.size)
            self._telemetry.set_attribute(
                turn.phase_span_id, Attr.CAPTURE_DURATION_MS, captured.duration_ms
            )
        return captured

    async def _respond(self, turn: Turn, buffer: AudioBuffer) -> None:
        token = turn.token
        session = self._session

        transcript_text: str | None = None
        if self._config.voice_native or self._transcription is None:
            self._set_phase(turn, Phase.INTERPRETING)
            request = InterpretationRequest(
                session_id=session.id,
                language=session.language,
                include_audio=self._include_audio(),
                audio=buffer.data,
                mime_type=buffer.content_type,
            )
        else:
            self._set_phase(turn, Phase.TRANSCRIBING)
            transcript = await token.guard(self._transcription.transcribe(buffer))
            if transcript.is_empty:
                logger.info("Turn %s: no speech recognised", turn.id)
                self._to_idle(turn)
                return
            if transcript.language:
                session.language = transcript.language
            transcript_text = transcript.text.strip()
            self._attr(turn, Attr.STT_TEXT_LENGTH, len(transcript_text))
            self._emit(
                self._transcript_callbacks,
                TranscriptEvent(
                    session_id=session.id,
                    turn_id=turn.id,
                    text=transcript_text,
                    language=transcript.language,
                ),
            )
            self._set_phase(turn, Phase.INTERPRETING)
            request = InterpretationRequest(
                session_id=session.id,
                language=session.language,
                include_audio=self._include_audio(),
                text=transcript_text,
            )

        interpretation = await token.guard(self._interpretation.interpret(request))
        if interpretation.session_id:
            session.id = interpretation.session_id
        self._attr(turn, Attr.CHAT_SHOULD_SEARCH, interpretation.should_search)
        self._attr(turn, Attr.CHAT_SHOULD_STOP, interpretation.should_stop)
        if interpretation.should_stop:
            logger.info("Interpretation ended the conversation")
            session.active = False

        terms = [t.strip() for t in interpretation.search_terms if t.strip()]
        if interpretation.should_search and not terms and transcript_text:
            terms = [transcript_text]
        wants_search = interpretation.should_search and bool(terms)
        if wants_search and self._search is None:
            logger.warning("Search requested but no search service is configured")
            wants_search = False

        spoken = clean_for_speech(interpretation.spoken_text)
        if spoken or interpretation.audio is not None:
            await self._speak(turn, spoken, audio=interpretation.audio, source="interpretation")
        elif wants_search and self._config.announce_search:
            await self._speak(turn, compose_search_announcement(terms), source="announcement")

        if wants_search:
            await self._run_search(turn, terms)

    async def _run_search(
        self, turn: Turn, terms: list[str], *, page: int = 1, speak_summary: bool = True
    ) -> None:
        search = self._search
        if search is None:
            return
        token = turn.token
        session = self._session

        self._set_phase(turn, Phase.SEARCHING)
        self._attr(turn, Attr.SEARCH_TERMS, " ".join(terms))
        self._attr(turn, Attr.SEARCH_PAGE, page)
        session.preferences.page = page
        request = session.preferences.to_request(
            terms, locale=session.language, include_audio=speak_summary and self._include_audio()
        )
        results = await token.guard(search.search(request))

        session.last_topic = list(terms)
        session.last_results = list(results.products)
        session.pagination = results.pagination
        self._attr(turn, Attr.SEARCH_RESULT_COUNT, results.total)
        self._emit(
            self._results_callbacks,
            ResultsEvent(
                session_id=session.id,
                turn_id=turn.id,
                terms=tuple(terms),
                products=tuple(results.products),
                total=results.total,
                page=page,
            ),
        )
        if not speak_summary:
            return

        if results.summary:
            await self._speak(turn, results.summary, audio=results.audio, source="search")
            return

        summary = compose_results_summary(terms, results)
        if self._translation is not None and not session.language.lower().startswith("en"):
            try:
                summary = await token.guard(self._translation.translate(summary, session.language))
            except TranslationError as exc:
                logger.warning("Summary translation failed (%s), speaking English", exc)
        await self._speak(turn, summary, source="search")

    async def _speak(
        self,
        turn: Turn,
        text: str,
        *,
        audio: SynthesizedAudio | None = None,
        source: str,
    ) -> None:
        token = turn.token
        text = clean_for_speech(text)
        if not text and audio is None:
            return

        self._set_phase(turn, Phase.SPEAKING)
        self._emit(
            self._response_callbacks,
            ResponseEvent(session_id=self._session.id, turn_id=turn.id, text=text, source=source),
        )

        if audio is None and text and self._synthesis is not None and self._include_audio():
            try:
                audio = await token.guard(self._synthesis.synthesize(text, self._session.language))
            except ServiceError as exc:
                logger.warning("Remote synthesis failed (%s), speaking locally", exc)
                self._playback.disable_remote(f"remote synthesis failed ({exc})")

        request = PlaybackRequest(
            text=text,
            audio=audio.data if audio is not None else None,
            content_type=audio.content_type if audio is not None else None,
            language=self._session.language,
        )
        turn.speaking = True
        try:
            outcome = await token.guard(self._playback.speak(request))
        finally:
            turn.speaking = False
        self._attr(turn, Attr.TTS_SOURCE, str(outcome))

    def _finish(self, turn: Turn) -> None:
        """Normal completion: Idle, then exactly one re-listen if still active."""
        if turn is not self._turn:
            return
        self._to_idle(turn)
        if self._session.active:
            self._schedule_relisten()

    def _to_idle(self, turn: Turn) -> None:
        if turn is not self._turn:
            return
        self._end_phase_span(turn)
        self._transition(Phase.IDLE, turn)
        self._turn = None
        self._session.pending_cancel = None
        logger.info("Turn %s finished", turn.id)

    def _fail(self, turn: Turn, exc: Exception) -> None:
        if turn is not self._turn:
            return
        kind = getattr(exc, "kind", None)
        self._end_phase_span(turn, status="error", error_message=str(exc))
        self._telemetry.set_attribute(turn.span_id or "", Attr.ERROR_KIND, str(kind))
        self._transition(Phase.ERROR, turn)
        self._turn = None
        self._session.pending_cancel = None
        self._emit(
            self._error_callbacks,
            TurnErrorEvent(
                session_id=self._session.id, turn_id=turn.id, kind=kind, message=str(exc)
            ),
        )
        loop = asyncio.get_running_loop()
        self._revert_handle = loop.call_later(
            self._config.error_revert_delay_s, self._revert_error
        )

    async def _cleanup(self, turn: Turn) -> None:
        """Release everything *turn* holds. Idempotent."""
        if turn.monitor is not None:
            turn.monitor.stop()
            turn.monitor = None
        if turn.speaking:
            self._playback.stop()
            turn.speaking = False
        if turn.owns_capture:
            turn.owns_capture = False
            turn.stream = None
            try:
                await self._source.abort()
            except Exception:
                logger.exception("Error releasing capture stream")
        turn.speech_end = None

    # -------------------------------------------------------------------------
    # Timers
    # -------------------------------------------------------------------------

    def _schedule_relisten(self) -> None:
        if self._relisten_handle is not None:
            return
        loop = asyncio.get_running_loop()
        self._relisten_handle = loop.call_later(self._config.echo_guard_s, self._relisten)
        logger.debug("Re-listen scheduled in %.2fs", self._config.echo_guard_s)

    def _relisten(self) -> None:
        self._relisten_handle = None
        if not self._session.active or self._turn is not None or self._phase != Phase.IDLE:
            return
        self._start_turn(self._listen_and_respond, Phase.LISTENING)

    def _revert_error(self) -> None:
        self._revert_handle = None
        if self._phase == Phase.ERROR and self._turn is None:
            self._transition(Phase.IDLE, None)

    def _cancel_timers(self) -> None:
        for handle in (self._relisten_handle, self._revert_handle):
            if handle is not None:
                handle.cancel()
        self._relisten_handle = None
        self._revert_handle = None

    # -------------------------------------------------------------------------
    # Phase bookkeeping
    # -------------------------------------------------------------------------

    def _include_audio(self) -> bool:
        return self._config.include_audio and self._playback.remote_enabled

    def _set_phase(self, turn: Turn, phase: Phase) -> None:
        """Move *turn* to *phase*; ignored once the turn is no longer current."""
        if turn is not self._turn:
            raise TurnCancelledError("turn superseded")
        if turn.phase == phase:
            return
        self._end_phase_span(turn)
        turn.phase = phase
        kind = _PHASE_SPANS.get(phase)
        if kind is not None:
            turn.phase_span_id = self._telemetry.start_span(
                kind,
                f"talkloop.{phase}",
                parent_id=turn.span_id,
                session_id=self._session.id,
                attributes={Attr.TURN_ID: turn.id, Attr.PHASE: str(phase)},
            )
        self._transition(phase, turn)

    def _transition(self, phase: Phase, turn: Turn | None) -> None:
        previous = self._phase
        if previous == phase:
            return
        self._phase = phase
        if turn is not None:
            turn.phase = phase
        logger.info("Phase %s -> %s", previous, phase)
        self._emit(
            self._phase_callbacks,
            PhaseChangedEvent(
                session_id=self._session.id,
                previous=previous,
                current=phase,
                turn_id=turn.id if turn is not None else None,
            ),
        )

    def _end_phase_span(
        self, turn: Turn, *, status: str = "ok", error_message: str | None = None
    ) -> None:
        span_id, turn.phase_span_id = turn.phase_span_id, None
        if span_id:
            self._telemetry.end_span(span_id, status=status, error_message=error_message)

    def _attr(self, turn: Turn, key: str, value: Any) -> None:
        if turn.phase_span_id:
            self._telemetry.set_attribute(turn.phase_span_id, key, value)

    # -------------------------------------------------------------------------
    # Event dispatch
    # -------------------------------------------------------------------------

    def _publish_level(self, level: float) -> None:
        if not self._level_callbacks:
            return
        self._emit(self._level_callbacks, LevelEvent(session_id=self._session.id, level=level))

    def _emit(self, callbacks: list[EventCallback], event: Any) -> None:
        for cb in list(callbacks):
            try:
                result = cb(event)
                if inspect.isawaitable(result):
                    task = asyncio.ensure_future(result)
                    task.add_done_callback(self._task_done)
                    self._scheduled_tasks.add(task)
            except Exception:
                logger.exception("Error in %s callback", type(event).__name__)

    def _task_done(self, task: asyncio.Future[Any]) -> None:
        """Done-callback for scheduled tasks: log exceptions and forget them."""
        self._scheduled_tasks.discard(task)  # type: ignore[arg-type]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Unhandled exception in controller task: %s", exc, exc_info=exc)
