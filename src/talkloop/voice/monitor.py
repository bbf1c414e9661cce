"""Energy-based end-of-speech detection.

A :class:`LoudnessAnalyser` turns captured PCM frames into a smoothed
loudness value in ``[0, 1]``. The :class:`EnergyMonitor` samples that value
on a fixed cadence and runs the :class:`SilenceDetector` state machine,
which fires exactly once when an armed utterance is followed by enough
continuous silence. No external services are involved.
"""

from __future__ import annotations

import asyncio
import logging
import struct
from collections.abc import Callable
from dataclasses import dataclass

from talkloop.voice.audio_frame import AudioFrame

logger = logging.getLogger("talkloop.voice.monitor")

_DEBUG_SUMMARY_INTERVAL = 60  # ticks (~1s at 60 Hz)

LevelCallback = Callable[[float], object]
SpeechEndCallback = Callable[[], object]


@dataclass
class EnergyMonitorConfig:
    """Configuration for end-of-speech detection."""

    noise_threshold: float = 0.08
    """Loudness at or below this value counts as silence."""

    min_speech_ms: float = 400
    """Continuous above-floor loudness required before auto-stop is armed."""

    silence_ms: float = 1500
    """Continuous silence after arming that ends the utterance."""

    tick_interval_s: float = 1 / 60
    """Sampling cadence (screen-refresh rate)."""

    smoothing: float = 0.5
    """Exponential smoothing factor applied by the analyser (0 = none)."""

    gain: float = 8.0
    """Multiplier applied to normalised RMS before clamping to 1.0."""


def _rms_int16(data: bytes) -> float:
    """Compute RMS of int16 little-endian PCM data."""
    n_samples = len(data) // 2
    if n_samples == 0:
        return 0.0
    samples = struct.unpack(f"<{n_samples}h", data[: n_samples * 2])
    sum_sq = sum(s * s for s in samples)
    return float((sum_sq / n_samples) ** 0.5)


class LoudnessAnalyser:
    """Smoothed, normalised loudness of the most recent frames."""

    def __init__(self, *, smoothing: float = 0.5, gain: float = 8.0) -> None:
        if not 0.0 <= smoothing < 1.0:
            raise ValueError(f"smoothing must be in [0, 1), got {smoothing}")
        self._smoothing = smoothing
        self._gain = gain
        self._level = 0.0

    @classmethod
    def from_config(cls, config: EnergyMonitorConfig) -> LoudnessAnalyser:
        return cls(smoothing=config.smoothing, gain=config.gain)

    def feed(self, frame: AudioFrame) -> float:
        value = min(1.0, _rms_int16(frame.data) / 32768.0 * self._gain)
        self._level = self._smoothing * self._level + (1.0 - self._smoothing) * value
        return self._level

    def set_level(self, level: float) -> None:
        """Force the current level (synthetic sources)."""
        self._level = max(0.0, min(1.0, level))

    def read(self) -> float:
        return self._level

    def reset(self) -> None:
        self._level = 0.0


@dataclass
class SilenceState:
    speaking_since: float | None = None
    armed: bool = False
    silence_since: float | None = None


class SilenceDetector:
    """Arming and trigger rules over a stream of ``(level, now_ms)`` samples.

    Auto-stop stays disabled until loudness has stayed above the noise
    floor for ``min_speech_ms`` continuously. Once armed, the detector
    fires when loudness stays at or below the floor for ``silence_ms``
    continuously; any loud sample resets the silence timer. It fires at
    most once until :meth:`reset`.
    """

    def __init__(self, config: EnergyMonitorConfig | None = None) -> None:
        self._config = config or EnergyMonitorConfig()
        self.state = SilenceState()
        self._fired = False

    @property
    def armed(self) -> bool:
        return self.state.armed

    @property
    def fired(self) -> bool:
        return self._fired

    def reset(self) -> None:
        self.state = SilenceState()
        self._fired = False

    def update(self, level: float, now_ms: float) -> bool:
        """Feed one sample. Returns True exactly once, on the trigger."""
        if self._fired:
            return False

        state = self.state
        loud = level > self._config.noise_threshold

        if not state.armed:
            if not loud:
                state.speaking_since = None
                return False
            if state.speaking_since is None:
                state.speaking_since = now_ms
            if now_ms - state.speaking_since >= self._config.min_speech_ms:
                state.armed = True
                logger.debug("Speech threshold crossed, auto-stop armed")
            return False

        if loud:
            state.silence_since = None
            return False
        if state.silence_since is None:
            state.silence_since = now_ms
        if now_ms - state.silence_since >= self._config.silence_ms:
            self._fired = True
            return True
        return False


class EnergyMonitor:
    """Samples a :class:`LoudnessAnalyser` and signals end of speech.

    Publishes the gated loudness on every tick through ``on_level``
    (observation only). The sampling loop halts on trigger, on
    :meth:`stop`, or when its task is cancelled.
    """

    def __init__(
        self,
        analyser: LoudnessAnalyser,
        config: EnergyMonitorConfig | None = None,
        *,
        on_level: LevelCallback | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._analyser = analyser
        self._config = config or EnergyMonitorConfig()
        self._detector = SilenceDetector(self._config)
        self._on_level = on_level
        self._clock = clock
        self._task: asyncio.Task[None] | None = None

        # Debug logging counters
        self._debug_tick_count = 0
        self._debug_level_sum = 0.0
        self._debug_level_max = 0.0

    @property
    def detector(self) -> SilenceDetector:
        return self._detector

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, on_speech_end: SpeechEndCallback) -> None:
        if self.running:
            raise RuntimeError("EnergyMonitor is already running")
        self._detector.reset()
        self._task = asyncio.get_running_loop().create_task(
            self._run(on_speech_end), name="talkloop-energy-monitor"
        )

    def stop(self) -> None:
        """Halt sampling. Safe to call repeatedly or after the trigger."""
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _now_ms(self) -> float:
        if self._clock is not None:
            return self._clock() * 1000.0
        return asyncio.get_running_loop().time() * 1000.0

    def _publish(self, level: float) -> None:
        if self._on_level is None:
            return
        try:
            self._on_level(level)
        except Exception:
            logger.exception("Error in level callback")

    async def _run(self, on_speech_end: SpeechEndCallback) -> None:
        threshold = self._config.noise_threshold
        while True:
            level = self._analyser.read()
            self._publish(level if level > threshold else 0.0)

            if logger.isEnabledFor(logging.DEBUG):
                self._debug_summary(level)

            if self._detector.update(level, self._now_ms()):
                logger.info("End of speech detected")
                self._task = None
                try:
                    on_speech_end()
                except Exception:
                    logger.exception("Error in end-of-speech callback")
                return

            await asyncio.sleep(self._config.tick_interval_s)

    def _debug_summary(self, level: float) -> None:
        self._debug_tick_count += 1
        self._debug_level_sum += level
        if level > self._debug_level_max:
            self._debug_level_max = level
        if self._debug_tick_count >= _DEBUG_SUMMARY_INTERVAL:
            state = self._detector.state
            logger.debug(
                "Monitor: armed=%s level_avg=%.3f level_max=%.3f silence_since=%s",
                state.armed,
                self._debug_level_sum / self._debug_tick_count,
                self._debug_level_max,
                state.silence_since,
            )
            self._debug_tick_count = 0
            self._debug_level_sum = 0.0
            self._debug_level_max = 0.0
