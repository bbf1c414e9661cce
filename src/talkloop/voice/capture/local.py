"""Microphone capture through the system input device.

Requires the ``sounddevice`` optional dependency::

    pip install talkloop[local-audio]
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from talkloop.core.errors import PermissionDeniedError
from talkloop.voice.audio_frame import AudioFrame
from talkloop.voice.capture.base import AudioSource, CaptureConfig, CaptureStream
from talkloop.voice.monitor import EnergyMonitorConfig, LoudnessAnalyser

if TYPE_CHECKING:
    import sounddevice as sd

logger = logging.getLogger("talkloop.voice.local")


def _import_sounddevice() -> Any:
    """Import sounddevice, raising a clear error if missing."""
    try:
        import sounddevice as _sd

        return _sd
    except ImportError as exc:
        raise ImportError(
            "sounddevice is required for SoundDeviceSource. "
            "Install it with: pip install talkloop[local-audio]"
        ) from exc


class SoundDeviceSource(AudioSource):
    """AudioSource reading 16-bit PCM blocks from a PortAudio input device.

    Blocks arrive on the PortAudio thread and are handed to the event loop
    with ``call_soon_threadsafe``.

    Args:
        config: Capture configuration.
        monitor_config: Loudness analyser settings (smoothing, gain).
        device: Sounddevice input device index or name (None = default).
    """

    def __init__(
        self,
        config: CaptureConfig | None = None,
        *,
        monitor_config: EnergyMonitorConfig | None = None,
        device: int | str | None = None,
    ) -> None:
        super().__init__(config)
        self._sd = _import_sounddevice()
        self._monitor_config = monitor_config or EnergyMonitorConfig()
        self._device = device
        self._input: sd.RawInputStream | None = None

    async def open(self) -> CaptureStream:
        if self._stream is not None:
            raise RuntimeError("Capture stream already open")

        cfg = self._config
        loop = asyncio.get_running_loop()
        blocksize = int(cfg.sample_rate * cfg.block_duration_ms / 1000)
        stream = CaptureStream(
            analyser=LoudnessAnalyser.from_config(self._monitor_config),
            sample_rate=cfg.sample_rate,
            channels=cfg.channels,
        )

        def _on_block(data: bytes) -> None:
            if self._stream is not stream:
                return
            frame = AudioFrame(data=data, sample_rate=cfg.sample_rate, channels=cfg.channels)
            self._append_frame(frame)

        def _audio_callback(indata: bytes, frames: int, time_info: Any, status: Any) -> None:
            if status:
                logger.warning("Mic status: %s", status)
            if loop.is_closed():
                return
            loop.call_soon_threadsafe(_on_block, bytes(indata))

        try:
            raw = self._sd.RawInputStream(
                samplerate=cfg.sample_rate,
                blocksize=blocksize,
                channels=cfg.channels,
                dtype="int16",
                device=self._device,
                callback=_audio_callback,
            )
        except self._sd.PortAudioError as exc:
            raise PermissionDeniedError(f"Microphone unavailable: {exc}") from exc
        try:
            raw.start()
        except self._sd.PortAudioError as exc:
            raw.close()
            raise PermissionDeniedError(f"Microphone unavailable: {exc}") from exc

        self._input = raw
        self._stream = stream
        logger.info(
            "Mic opened: stream=%s, rate=%d, block=%dms",
            stream.id,
            cfg.sample_rate,
            cfg.block_duration_ms,
        )
        return stream

    async def _release(self) -> None:
        raw, self._input = self._input, None
        if raw is None:
            return
        try:
            raw.stop()
        except Exception:
            logger.warning("Error stopping mic stream")
        finally:
            raw.close()
