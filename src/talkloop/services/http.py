"""HTTP adapters for the remote collaborators.

All adapters talk JSON to one backend described by :class:`BackendConfig`
and share its connection pool when constructed from the same
:class:`BackendClient`.
"""

from __future__ import annotations

import base64
import logging
from typing import Any

import httpx
from pydantic import BaseModel, Field, SecretStr, ValidationError

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

logger = logging.getLogger("talkloop.services")


class BackendEndpoints(BaseModel):
    transcribe: str = "/transcribe"
    interpret: str = "/api/chat"
    greet: str = "/api/chat/init"
    search: str = "/api/search"
    translate: str = "/api/translate"
    synthesize: str = "/api/tts"


class BackendConfig(BaseModel):
    """Configuration for the HTTP collaborators."""

    base_url: str = "http://localhost:3000"
    api_key: SecretStr | None = None
    timeout: float = 30.0
    transcription_timeout: float = 120.0
    headers: dict[str, str] = Field(default_factory=dict)
    endpoints: BackendEndpoints = Field(default_factory=BackendEndpoints)


class BackendClient:
    """Lazily created ``httpx.AsyncClient`` plus JSON POST error mapping.

    Args:
        config: Backend configuration.
        transport: Optional transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        config: BackendConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or BackendConfig()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def config(self) -> BackendConfig:
        return self._config

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Content-Type": "application/json", **self._config.headers}
            if self._config.api_key is not None:
                headers["Authorization"] = f"Bearer {self._config.api_key.get_secret_value()}"
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url,
                headers=headers,
                timeout=self._config.timeout,
                transport=self._transport,
            )
        return self._client

    async def post(
        self,
        path: str,
        payload: dict[str, Any],
        error_cls: type[ServiceError],
        *,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """POST *payload* and return the decoded JSON object.

        Raises:
            error_cls: On timeout, HTTP error status, transport error or a
                body that is not a JSON object.
        """
        client = self._get_client()
        try:
            resp = await client.post(
                path,
                json=payload,
                timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.TimeoutException as exc:
            raise error_cls(f"{path}: timeout") from exc
        except httpx.HTTPStatusError as exc:
            raise error_cls(f"{path}: http_{exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise error_cls(f"{path}: {exc}") from exc
        except ValueError as exc:
            raise error_cls(f"{path}: malformed JSON response") from exc

        if not isinstance(data, dict):
            raise error_cls(f"{path}: expected a JSON object, got {type(data).__name__}")
        return data

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class _HTTPService:
    def __init__(
        self,
        config: BackendConfig | None = None,
        *,
        client: BackendClient | None = None,
    ) -> None:
        self._backend = client or BackendClient(config)
        self._owns_client = client is None

    @property
    def _endpoints(self) -> BackendEndpoints:
        return self._backend.config.endpoints

    async def close(self) -> None:
        if self._owns_client:
            await self._backend.close()


class HTTPTranscriptionService(_HTTPService, TranscriptionService):
    """POSTs ``{audio: base64, mimeType}`` and reads ``{text, language}``."""

    async def transcribe(self, buffer: AudioBuffer) -> Transcript:
        payload = {
            "audio": base64.b64encode(buffer.data).decode("ascii"),
            "mimeType": buffer.content_type,
        }
        data = await self._backend.post(
            self._endpoints.transcribe,
            payload,
            TranscriptionError,
            timeout=self._backend.config.transcription_timeout,
        )
        try:
            transcript = Transcript.model_validate(data)
        except ValidationError as exc:
            raise TranscriptionError(f"Invalid transcription response: {exc}") from exc
        logger.info("Transcribed %d bytes -> %d chars", buffer.size, len(transcript.text))
        return transcript


class HTTPInterpretationService(_HTTPService, InterpretationService):
    async def interpret(self, request: InterpretationRequest) -> Interpretation:
        payload = request.model_dump(by_alias=True, exclude_none=True, exclude={"audio"})
        if request.audio is not None:
            payload["audio"] = base64.b64encode(request.audio).decode("ascii")
        data = await self._backend.post(self._endpoints.interpret, payload, InterpretationError)
        return self._parse(data)

    async def greet(
        self, session_id: str, language: str, *, include_audio: bool = True
    ) -> Interpretation:
        payload = {"sessionId": session_id, "language": language, "includeAudio": include_audio}
        data = await self._backend.post(self._endpoints.greet, payload, InterpretationError)
        return self._parse(data)

    @staticmethod
    def _parse(data: dict[str, Any]) -> Interpretation:
        try:
            return Interpretation.model_validate(data)
        except ValidationError as exc:
            raise InterpretationError(f"Invalid interpretation response: {exc}") from exc


class HTTPSearchService(_HTTPService, SearchService):
    async def search(self, request: SearchRequest) -> SearchResults:
        payload: dict[str, Any] = {
            "term": request.term,
            "lat": request.location.lat,
            "lon": request.location.lon,
            "language": request.locale,
            "sort": request.sort,
            "page": request.page,
            "platforms": request.platforms,
            "price_min": request.price_min,
            "price_max": request.price_max,
            "time_min": request.time_min,
            "time_max": request.time_max,
            "restaurant_filter": request.restaurant_filter,
            "group_by_restaurant": request.group_by_restaurant,
            "includeAudio": request.include_audio,
        }
        data = await self._backend.post(self._endpoints.search, payload, SearchError)
        try:
            results = SearchResults.model_validate(data)
        except ValidationError as exc:
            raise SearchError(f"Invalid search response: {exc}") from exc
        logger.info("Search %r returned %d products", request.term, len(results.products))
        return results


class HTTPTranslationService(_HTTPService, TranslationService):
    async def translate(self, text: str, language: str) -> str:
        data = await self._backend.post(
            self._endpoints.translate, {"text": text, "language": language}, TranslationError
        )
        translated = data.get("translated")
        if not isinstance(translated, str) or not translated.strip():
            raise TranslationError("Translation response has no 'translated' text")
        return translated


class HTTPSynthesisService(_HTTPService, SynthesisService):
    """POSTs ``{text, language}`` and reads ``{audio: base64, contentType}``."""

    async def synthesize(self, text: str, language: str) -> SynthesizedAudio:
        data = await self._backend.post(
            self._endpoints.synthesize, {"text": text, "language": language}, ServiceError
        )
        try:
            return SynthesizedAudio.model_validate(
                {"data": data.get("audio"), "contentType": data.get("contentType", "audio/mpeg")}
            )
        except (ValidationError, ValueError) as exc:
            raise ServiceError(f"Invalid synthesis response: {exc}") from exc
