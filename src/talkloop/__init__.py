"""talkloop - hands-free voice conversation loop with turn-taking control."""

from talkloop._version import __version__
from talkloop.core.cancellation import CancellationToken
from talkloop.core.controller import ControllerConfig, TurnController
from talkloop.core.errors import (
    ControllerNotConfiguredError,
    InterpretationError,
    PermissionDeniedError,
    PlaybackDecodeError,
    PlaybackError,
    SearchError,
    ServiceError,
    TalkLoopError,
    TranscriptionError,
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
from talkloop.models.enums import ErrorKind, Phase
from talkloop.models.messages import (
    Interpretation,
    InterpretationRequest,
    Location,
    Pagination,
    SearchRequest,
    SearchResults,
    SynthesizedAudio,
    Transcript,
)
from talkloop.models.session import ConversationSession, SearchPreferences, Turn
from talkloop.services import (
    BackendConfig,
    HTTPInterpretationService,
    HTTPSearchService,
    HTTPSynthesisService,
    HTTPTranscriptionService,
    HTTPTranslationService,
    InterpretationService,
    MockInterpretationService,
    MockSearchService,
    MockSynthesisService,
    MockTranscriptionService,
    MockTranslationService,
    SearchService,
    SynthesisService,
    TranscriptionService,
    TranslationService,
)
from talkloop.telemetry import (
    MockTelemetryProvider,
    NoopTelemetryProvider,
    SpanKind,
    TelemetryProvider,
)
from talkloop.voice import (
    AudioBuffer,
    AudioSink,
    AudioSource,
    CaptureConfig,
    EmptyCapture,
    EnergyMonitor,
    EnergyMonitorConfig,
    LocalSynthesizer,
    MockAudioSink,
    MockAudioSource,
    MockSynthesizer,
    PlaybackConfig,
    PlaybackOutcome,
    PlaybackRequest,
    Pyttsx3Synthesizer,
    SilenceDetector,
    SoundDeviceSink,
    SoundDeviceSource,
    SpeechPlayback,
)

__all__ = [
    "AudioBuffer",
    "AudioSink",
    "AudioSource",
    "BackendConfig",
    "CancellationToken",
    "CaptureConfig",
    "ControllerConfig",
    "ControllerNotConfiguredError",
    "ConversationSession",
    "EmptyCapture",
    "EnergyMonitor",
    "EnergyMonitorConfig",
    "ErrorKind",
    "HTTPInterpretationService",
    "HTTPSearchService",
    "HTTPSynthesisService",
    "HTTPTranscriptionService",
    "HTTPTranslationService",
    "Interpretation",
    "InterpretationError",
    "InterpretationRequest",
    "InterpretationService",
    "LevelEvent",
    "LocalSynthesizer",
    "Location",
    "MockAudioSink",
    "MockAudioSource",
    "MockInterpretationService",
    "MockSearchService",
    "MockSynthesisService",
    "MockSynthesizer",
    "MockTelemetryProvider",
    "MockTranscriptionService",
    "MockTranslationService",
    "NoopTelemetryProvider",
    "Pagination",
    "PermissionDeniedError",
    "Phase",
    "PhaseChangedEvent",
    "PlaybackConfig",
    "PlaybackDecodeError",
    "PlaybackError",
    "PlaybackOutcome",
    "PlaybackRequest",
    "Pyttsx3Synthesizer",
    "ResponseEvent",
    "ResultsEvent",
    "SearchError",
    "SearchPreferences",
    "SearchRequest",
    "SearchResults",
    "SearchService",
    "ServiceError",
    "SilenceDetector",
    "SoundDeviceSink",
    "SoundDeviceSource",
    "SpanKind",
    "SpeechPlayback",
    "SynthesisService",
    "SynthesizedAudio",
    "TalkLoopError",
    "TelemetryProvider",
    "Transcript",
    "TranscriptEvent",
    "TranscriptionError",
    "TranscriptionService",
    "TranslationError",
    "TranslationService",
    "Turn",
    "TurnCancelledError",
    "TurnController",
    "TurnErrorEvent",
    "__version__",
    "clean_for_speech",
    "compose_results_summary",
    "compose_search_announcement",
]
