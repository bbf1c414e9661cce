"""Tests for audio capture sources, frames and WAV helpers."""

from __future__ import annotations

import asyncio
import struct

import pytest

from talkloop.core.errors import PermissionDeniedError
from talkloop.voice.audio_frame import AudioFrame
from talkloop.voice.capture.base import AudioBuffer, CaptureStream, EmptyCapture
from talkloop.voice.capture.mock import MockAudioSource
from talkloop.voice.monitor import LoudnessAnalyser
from talkloop.voice.utils import read_wav, silent_wav, wrap_wav

# ---------------------------------------------------------------------------
# AudioFrame
# ---------------------------------------------------------------------------


class TestAudioFrame:
    def test_duration(self) -> None:
        frame = AudioFrame(data=b"\x00\x00" * 320)
        assert frame.duration_ms == pytest.approx(20.0)

    def test_rejects_odd_length(self) -> None:
        with pytest.raises(ValueError, match="divisible"):
            AudioFrame(data=b"\x00\x00\x00")

    def test_rejects_non_16_bit(self) -> None:
        with pytest.raises(ValueError, match="16-bit"):
            AudioFrame(data=b"\x00\x00", sample_width=1)

    def test_rejects_bad_sample_rate(self) -> None:
        with pytest.raises(ValueError, match="sample_rate"):
            AudioFrame(data=b"\x00\x00", sample_rate=0)


# ---------------------------------------------------------------------------
# WAV helpers
# ---------------------------------------------------------------------------


class TestWav:
    def test_wrap_then_read(self) -> None:
        pcm = struct.pack("<4h", 1, -1, 200, -200)
        decoded, rate, channels = read_wav(wrap_wav(pcm, 22050, 2))
        assert decoded == pcm
        assert rate == 22050
        assert channels == 2

    def test_header_size(self) -> None:
        assert len(wrap_wav(b"", 16000)) == 44

    def test_silent_wav_zero_length(self) -> None:
        pcm, rate, _ = read_wav(silent_wav())
        assert pcm == b""
        assert rate == 16000

    def test_silent_wav_with_duration(self) -> None:
        pcm, _, _ = read_wav(silent_wav(8000, 100))
        assert pcm == b"\x00\x00" * 800

    def test_read_rejects_garbage(self) -> None:
        with pytest.raises(ValueError, match="Invalid WAV"):
            read_wav(b"ID3\x03not a wav")


# ---------------------------------------------------------------------------
# MockAudioSource lifecycle
# ---------------------------------------------------------------------------


class TestMockAudioSource:
    async def test_open_capture_finalize(self) -> None:
        source = MockAudioSource([[(0.5, 0.06)]])
        stream = await source.open()
        assert source.is_open
        source.begin_capture(stream)
        assert source.is_capturing

        await asyncio.sleep(0.1)
        result = await source.finalize()

        assert isinstance(result, AudioBuffer)
        assert result.content_type == "audio/wav"
        assert result.data.startswith(b"RIFF")
        assert result.duration_ms == pytest.approx(60.0)
        assert not source.is_open
        assert source.release_count == 1

    async def test_analyser_follows_trace(self) -> None:
        source = MockAudioSource([[(0.7, 0.05), (0.1, 0.05)]])
        stream = await source.open()
        source.begin_capture(stream)
        await asyncio.sleep(0.02)
        assert stream.analyser.read() == pytest.approx(0.7)
        await source.abort()

    async def test_finalize_without_chunks_is_empty(self) -> None:
        source = MockAudioSource()
        stream = await source.open()
        source.begin_capture(stream)
        result = await source.finalize()
        assert isinstance(result, EmptyCapture)
        assert not source.is_open

    async def test_finalize_when_never_opened_is_empty(self) -> None:
        source = MockAudioSource()
        assert isinstance(await source.finalize(), EmptyCapture)

    async def test_abort_discards_and_is_idempotent(self) -> None:
        source = MockAudioSource([[(0.5, 1.0)]])
        stream = await source.open()
        source.begin_capture(stream)
        await asyncio.sleep(0.05)

        await source.abort()
        await source.abort()

        assert not source.is_open
        assert not source.is_capturing
        assert source.release_count == 1
        assert stream.analyser.read() == 0.0

    async def test_reopen_after_release(self) -> None:
        source = MockAudioSource([[(0.5, 0.02)], [(0.3, 0.02)]])
        await source.open()
        await source.abort()
        await source.open()
        assert source.open_count == 2
        await source.abort()

    async def test_stale_device_detected(self) -> None:
        source = MockAudioSource()
        await source.open()
        with pytest.raises(RuntimeError, match="stale device"):
            await source.open()
        await source.abort()

    async def test_permission_denied(self) -> None:
        source = MockAudioSource(permission_denied=True)
        with pytest.raises(PermissionDeniedError):
            await source.open()
        assert not source.is_open

    async def test_begin_capture_rejects_foreign_stream(self) -> None:
        source = MockAudioSource()
        await source.open()
        with pytest.raises(ValueError, match="not opened by this source"):
            source.begin_capture(CaptureStream(analyser=LoudnessAnalyser()))
        await source.abort()

    async def test_calls_recorded(self) -> None:
        source = MockAudioSource([[(0.5, 0.02)]])
        stream = await source.open()
        source.begin_capture(stream)
        await source.finalize()
        assert [c.method for c in source.calls] == ["open", "begin_capture", "finalize"]
