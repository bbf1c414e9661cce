"""Voice support for talkloop (capture, end-of-speech detection, playback)."""

from __future__ import annotations

from talkloop.voice.audio_frame import AudioFrame
from talkloop.voice.capture.base import (
    AudioBuffer,
    AudioSource,
    CaptureConfig,
    CaptureStream,
    EmptyCapture,
)
from talkloop.voice.capture.local import SoundDeviceSource
from talkloop.voice.capture.mock import MockAudioSource
from talkloop.voice.monitor import (
    EnergyMonitor,
    EnergyMonitorConfig,
    LoudnessAnalyser,
    SilenceDetector,
    SilenceState,
)
from talkloop.voice.playback.base import (
    AudioSink,
    LocalSynthesizer,
    PlaybackConfig,
    PlaybackOutcome,
    PlaybackRequest,
    Voice,
    select_voice,
)
from talkloop.voice.playback.local import Pyttsx3Synthesizer, SoundDeviceSink
from talkloop.voice.playback.mock import MockAudioSink, MockSynthesizer
from talkloop.voice.playback.speech import SpeechPlayback

__all__ = [
    "AudioBuffer",
    "AudioFrame",
    "AudioSink",
    "AudioSource",
    "CaptureConfig",
    "CaptureStream",
    "EmptyCapture",
    "EnergyMonitor",
    "EnergyMonitorConfig",
    "LocalSynthesizer",
    "LoudnessAnalyser",
    "MockAudioSink",
    "MockAudioSource",
    "MockSynthesizer",
    "PlaybackConfig",
    "PlaybackOutcome",
    "PlaybackRequest",
    "Pyttsx3Synthesizer",
    "SilenceDetector",
    "SilenceState",
    "SoundDeviceSink",
    "SoundDeviceSource",
    "SpeechPlayback",
    "Voice",
    "select_voice",
]
