"""Mock audio source for testing."""

from __future__ import annotations

import asyncio
import contextlib
import struct
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from talkloop.core.errors import PermissionDeniedError
from talkloop.voice.capture.base import (
    AudioBuffer,
    AudioSource,
    CaptureConfig,
    CaptureStream,
    EmptyCapture,
)
from talkloop.voice.monitor import LoudnessAnalyser

# (loudness in [0, 1], seconds)
LoudnessTrace = list[tuple[float, float]]


@dataclass
class MockCaptureCall:
    """Record of a call made to MockAudioSource."""

    method: str
    args: dict[str, Any] = field(default_factory=dict)


def _synthetic_pcm(level: float, n_samples: int) -> bytes:
    amplitude = int(max(0.0, min(1.0, level)) * 32767)
    return struct.pack(f"<{n_samples}h", *([amplitude] * n_samples))


class MockAudioSource(AudioSource):
    """Plays scripted loudness traces instead of reading a microphone.

    Each :meth:`open` consumes the next trace from ``traces``; once they
    are exhausted the source stays silent. While capturing, every
    ``frame_ms`` a synthetic frame is buffered and the analyser level is
    set to the trace value.

    Opening while a previous stream is still held raises a stale-device
    ``RuntimeError``, which makes leaked streams visible in tests.

    Example:
        source = MockAudioSource([[(0.5, 0.4), (0.0, 1.6)]])
        stream = await source.open()
        source.begin_capture(stream)
    """

    def __init__(
        self,
        traces: Iterable[LoudnessTrace] | None = None,
        *,
        config: CaptureConfig | None = None,
        frame_ms: int = 20,
        permission_denied: bool = False,
    ) -> None:
        super().__init__(config)
        self._traces: list[LoudnessTrace] = [list(t) for t in traces or []]
        self._frame_ms = frame_ms
        self.permission_denied = permission_denied
        self.calls: list[MockCaptureCall] = []
        self.open_count = 0
        self.release_count = 0
        self._feeder: asyncio.Task[None] | None = None
        self._current: LoudnessTrace = []

    def add_trace(self, trace: LoudnessTrace) -> None:
        self._traces.append(list(trace))

    async def open(self) -> CaptureStream:
        self.calls.append(MockCaptureCall(method="open"))
        if self.permission_denied:
            raise PermissionDeniedError("Microphone access denied")
        if self._stream is not None:
            raise RuntimeError("stale device: previous capture stream was never released")

        self.open_count += 1
        self._current = self._traces.pop(0) if self._traces else []
        self._stream = CaptureStream(
            analyser=LoudnessAnalyser(smoothing=0.0),
            sample_rate=self._config.sample_rate,
            channels=self._config.channels,
        )
        return self._stream

    def begin_capture(self, stream: CaptureStream) -> None:
        super().begin_capture(stream)
        self.calls.append(MockCaptureCall(method="begin_capture", args={"stream_id": stream.id}))
        self._feeder = asyncio.get_running_loop().create_task(self._feed(stream, self._current))

    async def finalize(self) -> AudioBuffer | EmptyCapture:
        self.calls.append(MockCaptureCall(method="finalize"))
        return await super().finalize()

    async def abort(self) -> None:
        self.calls.append(MockCaptureCall(method="abort"))
        await super().abort()

    async def _release(self) -> None:
        self.release_count += 1
        feeder, self._feeder = self._feeder, None
        if feeder is not None and not feeder.done() and feeder is not asyncio.current_task():
            feeder.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await feeder

    async def _feed(self, stream: CaptureStream, trace: LoudnessTrace) -> None:
        frame_s = self._frame_ms / 1000
        n_samples = stream.sample_rate * self._frame_ms // 1000
        for level, seconds in trace:
            frames = max(1, round(seconds / frame_s))
            pcm = _synthetic_pcm(level, n_samples)
            for _ in range(frames):
                if self._stream is not stream:
                    return
                stream.analyser.set_level(level)
                if self._capturing:
                    self._chunks.append(pcm)
                await asyncio.sleep(frame_s)
        if self._stream is stream:
            stream.analyser.set_level(0.0)
