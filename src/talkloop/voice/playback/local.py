"""Local speaker sink and on-device synthesizer.

Requires the ``local-audio`` optional dependencies::

    pip install talkloop[local-audio]
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from talkloop.core.errors import PlaybackDecodeError, PlaybackError
from talkloop.voice.playback.base import AudioSink, LocalSynthesizer, Voice, select_voice
from talkloop.voice.utils import read_wav

logger = logging.getLogger("talkloop.playback.local")

_WAV_TYPES = frozenset({"audio/wav", "audio/x-wav", "audio/wave", "audio/vnd.wave"})


def _import_sounddevice() -> Any:
    """Import sounddevice, raising a clear error if missing."""
    try:
        import sounddevice as _sd

        return _sd
    except ImportError as exc:
        raise ImportError(
            "sounddevice is required for SoundDeviceSink. "
            "Install it with: pip install talkloop[local-audio]"
        ) from exc


def _import_pyttsx3() -> Any:
    """Import pyttsx3, raising a clear error if missing."""
    try:
        import pyttsx3 as _pyttsx3

        return _pyttsx3
    except ImportError as exc:
        raise ImportError(
            "pyttsx3 is required for Pyttsx3Synthesizer. "
            "Install it with: pip install talkloop[local-audio]"
        ) from exc


class SoundDeviceSink(AudioSink):
    """AudioSink playing 16-bit PCM WAV payloads on the default output device.

    Compressed payloads (e.g. ``audio/mpeg``) are rejected with
    :class:`PlaybackDecodeError`, which moves :class:`SpeechPlayback` onto
    its local synthesis path.
    """

    def __init__(self, *, device: int | str | None = None) -> None:
        self._sd = _import_sounddevice()
        self._device = device
        self._data: Any = None
        self._sample_rate = 16000

    def load(self, data: bytes, content_type: str) -> None:
        if content_type.split(";")[0].strip().lower() not in _WAV_TYPES:
            raise PlaybackDecodeError(f"Unsupported audio content type: {content_type}")
        try:
            pcm, sample_rate, channels = read_wav(data)
        except ValueError as exc:
            raise PlaybackDecodeError(str(exc)) from exc

        import numpy as np

        self._data = np.frombuffer(pcm, dtype=np.int16).reshape(-1, channels)
        self._sample_rate = sample_rate

    async def play(self) -> None:
        data = self._data
        if data is None or len(data) == 0:
            return
        sd = self._sd

        def _play() -> None:
            sd.play(data, samplerate=self._sample_rate, device=self._device)
            sd.wait()

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, _play)
        except sd.PortAudioError as exc:
            raise PlaybackError(f"Output device error: {exc}") from exc

    def pause(self) -> None:
        try:
            self._sd.stop()
        except self._sd.PortAudioError as exc:
            raise PlaybackError(f"Output device error: {exc}") from exc

    def rewind(self) -> None:
        # sd.play always starts from the first sample.
        pass


def _decode_language(raw: Any) -> str:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="ignore")
    return "".join(ch for ch in str(raw) if ch.isprintable())


class Pyttsx3Synthesizer(LocalSynthesizer):
    """LocalSynthesizer backed by the platform speech engine via pyttsx3.

    The engine is not thread-safe, so every call runs on one dedicated
    worker thread.

    Args:
        rate: Words per minute.
        volume: Output volume in ``[0, 1]``.
    """

    def __init__(self, *, rate: int = 200, volume: float = 0.9) -> None:
        self._pyttsx3 = _import_pyttsx3()
        self._rate = rate
        self._volume = volume
        self._engine: Any = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="talkloop-tts")
        self._voices: list[Voice] | None = None

    def _get_engine(self) -> Any:
        if self._engine is None:
            engine = self._pyttsx3.init()
            engine.setProperty("rate", self._rate)
            engine.setProperty("volume", self._volume)
            self._engine = engine
            logger.info("pyttsx3 engine initialized")
        return self._engine

    def voices(self) -> list[Voice]:
        if self._voices is None:
            engine = self._get_engine()
            self._voices = [
                Voice(
                    id=v.id,
                    name=getattr(v, "name", "") or "",
                    languages=tuple(_decode_language(lang) for lang in (v.languages or [])),
                )
                for v in engine.getProperty("voices") or []
            ]
        return self._voices

    async def speak(self, text: str, language: str) -> None:
        def _speak() -> None:
            engine = self._get_engine()
            voice = select_voice(self.voices(), language)
            if voice is not None:
                engine.setProperty("voice", voice.id)
            engine.say(text)
            engine.runAndWait()

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(self._executor, _speak)
        except RuntimeError as exc:
            raise PlaybackError(f"Local synthesis failed: {exc}") from exc

    def cancel(self) -> None:
        if self._engine is not None:
            self._engine.stop()

    async def close(self) -> None:
        self.cancel()
        self._executor.shutdown(wait=False, cancel_futures=True)
