"""AudioSource abstract base class and capture data types."""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from talkloop.voice.audio_frame import AudioFrame
from talkloop.voice.monitor import LoudnessAnalyser
from talkloop.voice.utils import wrap_wav

logger = logging.getLogger("talkloop.voice.capture")


@dataclass
class CaptureConfig:
    """Configuration for microphone capture."""

    max_duration_s: float = 30.0
    """Hard ceiling after which the capture is force-finalized."""

    sample_rate: int = 16000
    """Capture sample rate (Hz)."""

    channels: int = 1
    """Number of audio channels (1 = mono)."""

    block_duration_ms: int = 20
    """Duration of each captured block."""

    content_type: str = "audio/wav"
    """Content type of the finalized buffer."""


@dataclass(frozen=True)
class AudioBuffer:
    """Finalized capture. Immutable once produced."""

    data: bytes
    content_type: str = "audio/wav"
    sample_rate: int = 16000
    duration_ms: float = 0.0

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class EmptyCapture:
    """Result of finalizing a capture that produced no audio chunks."""

    reason: str = "no audio captured"


@dataclass
class CaptureStream:
    """Handle to an opened microphone stream."""

    analyser: LoudnessAnalyser
    sample_rate: int = 16000
    channels: int = 1
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])


class AudioSource(ABC):
    """Microphone acquisition and chunk accumulation.

    Lifecycle per turn: :meth:`open` -> :meth:`begin_capture` ->
    :meth:`finalize` (or :meth:`abort` on cancellation). Both ``finalize``
    and ``abort`` release the underlying device; ``abort`` is idempotent.

    Subclasses deliver frames through :meth:`_append_frame`, which keeps
    them in arrival order and feeds the stream's loudness analyser.
    """

    def __init__(self, config: CaptureConfig | None = None) -> None:
        self._config = config or CaptureConfig()
        self._chunks: list[bytes] = []
        self._capturing = False
        self._stream: CaptureStream | None = None

    @property
    def name(self) -> str:
        return type(self).__name__

    @property
    def config(self) -> CaptureConfig:
        return self._config

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    @property
    def is_capturing(self) -> bool:
        return self._capturing

    @abstractmethod
    async def open(self) -> CaptureStream:
        """Acquire the microphone.

        Raises:
            PermissionDeniedError: Microphone access was refused.
        """
        ...

    @abstractmethod
    async def _release(self) -> None:
        """Stop and close the underlying device."""
        ...

    def begin_capture(self, stream: CaptureStream) -> None:
        """Start buffering frames from *stream*."""
        if stream is not self._stream:
            raise ValueError(f"Stream {stream.id} was not opened by this source")
        self._chunks = []
        self._capturing = True
        logger.info("Capture started: stream=%s rate=%d", stream.id, stream.sample_rate)

    async def finalize(self) -> AudioBuffer | EmptyCapture:
        """Stop capture, release the device and return the concatenated buffer."""
        stream = self._stream
        chunks, self._chunks = self._chunks, []
        self._capturing = False
        await self._close()

        if not chunks or stream is None:
            logger.info("Capture finalized with no audio")
            return EmptyCapture()

        pcm = b"".join(chunks)
        duration_ms = len(pcm) / (2 * stream.channels) / stream.sample_rate * 1000.0
        logger.info("Capture finalized: %d bytes, %.0f ms", len(pcm), duration_ms)
        return AudioBuffer(
            data=wrap_wav(pcm, stream.sample_rate, stream.channels),
            content_type=self._config.content_type,
            sample_rate=stream.sample_rate,
            duration_ms=duration_ms,
        )

    async def abort(self) -> None:
        """Discard buffered audio and release the device. No-op when closed."""
        self._chunks = []
        self._capturing = False
        await self._close()

    async def _close(self) -> None:
        if self._stream is None:
            return
        stream, self._stream = self._stream, None
        try:
            await self._release()
        finally:
            stream.analyser.reset()
            logger.info("Capture stream released: stream=%s", stream.id)

    def _append_frame(self, frame: AudioFrame) -> None:
        stream = self._stream
        if stream is None:
            return
        stream.analyser.feed(frame)
        if self._capturing:
            self._chunks.append(frame.data)
