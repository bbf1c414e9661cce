"""Remote collaborator ABCs.

Each collaborator is a request/response contract. Implementations raise
the matching :class:`~talkloop.core.errors.ServiceError` subclass on any
failure; the controller never retries within a turn.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from talkloop.models.messages import (
        Interpretation,
        InterpretationRequest,
        SearchRequest,
        SearchResults,
        SynthesizedAudio,
        Transcript,
    )
    from talkloop.voice.capture.base import AudioBuffer


class TranscriptionService(ABC):
    """Speech-to-text over a finalized capture."""

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    async def transcribe(self, buffer: AudioBuffer) -> Transcript:
        """Transcribe *buffer*.

        An empty :class:`Transcript` means no speech was recognised.

        Raises:
            TranscriptionError: The backend failed.
        """
        ...

    async def close(self) -> None:  # noqa: B027
        """Release resources. Override in subclasses if needed."""


class InterpretationService(ABC):
    """Chat backend deciding what to say and whether to search."""

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    async def interpret(self, request: InterpretationRequest) -> Interpretation:
        """Interpret one utterance.

        Raises:
            InterpretationError: The backend failed.
        """
        ...

    async def greet(
        self, session_id: str, language: str, *, include_audio: bool = True
    ) -> Interpretation:
        """Opening line for a new conversation. Override to support greetings."""
        raise NotImplementedError(f"{self.name} does not support greetings")

    async def close(self) -> None:  # noqa: B027
        """Release resources. Override in subclasses if needed."""


class SearchService(ABC):
    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    async def search(self, request: SearchRequest) -> SearchResults:
        """Run a search.

        Raises:
            SearchError: The backend failed.
        """
        ...

    async def close(self) -> None:  # noqa: B027
        """Release resources. Override in subclasses if needed."""


class TranslationService(ABC):
    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    async def translate(self, text: str, language: str) -> str:
        """Translate English *text* into *language*.

        Raises:
            TranslationError: The backend failed.
        """
        ...

    async def close(self) -> None:  # noqa: B027
        """Release resources. Override in subclasses if needed."""


class SynthesisService(ABC):
    """Remote text-to-speech for text-only utterances."""

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @abstractmethod
    async def synthesize(self, text: str, language: str) -> SynthesizedAudio:
        """Synthesize *text*.

        Raises:
            ServiceError: The backend failed.
        """
        ...

    async def close(self) -> None:  # noqa: B027
        """Release resources. Override in subclasses if needed."""
