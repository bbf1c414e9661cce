"""Remote collaborators: transcription, interpretation, search, translation, synthesis."""

from talkloop.services.base import (
    InterpretationService,
    SearchService,
    SynthesisService,
    TranscriptionService,
    TranslationService,
)
from talkloop.services.http import (
    BackendClient,
    BackendConfig,
    BackendEndpoints,
    HTTPInterpretationService,
    HTTPSearchService,
    HTTPSynthesisService,
    HTTPTranscriptionService,
    HTTPTranslationService,
)
from talkloop.services.mock import (
    MockInterpretationService,
    MockSearchService,
    MockSynthesisService,
    MockTranscriptionService,
    MockTranslationService,
)

__all__ = [
    "BackendClient",
    "BackendConfig",
    "BackendEndpoints",
    "HTTPInterpretationService",
    "HTTPSearchService",
    "HTTPSynthesisService",
    "HTTPTranscriptionService",
    "HTTPTranslationService",
    "InterpretationService",
    "MockInterpretationService",
    "MockSearchService",
    "MockSynthesisService",
    "MockTranscriptionService",
    "MockTranslationService",
    "SearchService",
    "SynthesisService",
    "TranscriptionService",
    "TranslationService",
]
