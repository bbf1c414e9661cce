"""Tests for SpeechPlayback, voice selection and playback requests."""

from __future__ import annotations

import asyncio

import pytest

from talkloop.voice.playback.base import (
    PlaybackConfig,
    PlaybackOutcome,
    PlaybackRequest,
    Voice,
    select_voice,
)
from talkloop.voice.playback.mock import MockAudioSink, MockSynthesizer
from talkloop.voice.playback.speech import SpeechPlayback
from talkloop.voice.utils import wrap_wav

AUDIO = wrap_wav(b"\x10\x00" * 800, 16000)


def _playback(
    sink: MockAudioSink | None = None,
    synthesizer: MockSynthesizer | None = None,
    *,
    with_synthesizer: bool = True,
    settle_timeout_s: float = 5.0,
) -> tuple[SpeechPlayback, MockAudioSink, MockSynthesizer | None]:
    sink = sink or MockAudioSink(play_duration=0.01)
    if with_synthesizer:
        synthesizer = synthesizer or MockSynthesizer(speak_duration=0.01)
    playback = SpeechPlayback(
        sink, synthesizer, PlaybackConfig(settle_timeout_s=settle_timeout_s)
    )
    return playback, sink, synthesizer


# ---------------------------------------------------------------------------
# PlaybackRequest
# ---------------------------------------------------------------------------


class TestPlaybackRequest:
    def test_requires_audio_or_text(self) -> None:
        with pytest.raises(ValueError):
            PlaybackRequest()

    def test_blank_text_rejected(self) -> None:
        with pytest.raises(ValueError):
            PlaybackRequest(text="   ")

    def test_audio_only(self) -> None:
        request = PlaybackRequest(audio=AUDIO, content_type="audio/wav")
        assert request.has_audio

    def test_text_only(self) -> None:
        assert not PlaybackRequest(text="hi").has_audio


# ---------------------------------------------------------------------------
# Voice selection
# ---------------------------------------------------------------------------


class TestSelectVoice:
    VOICES = [
        Voice(id="fr", languages=("fr-FR",)),
        Voice(id="ar-eg", languages=("ar_EG",)),
        Voice(id="ar-ar", languages=("ar-AR",)),
        Voice(id="en-gb", languages=("en-GB",)),
        Voice(id="en-us", languages=("en-US",)),
    ]

    def test_prefers_regional_form(self) -> None:
        assert select_voice(self.VOICES, "ar").id == "ar-ar"

    def test_falls_back_to_any_voice_for_language(self) -> None:
        voices = [v for v in self.VOICES if v.id != "ar-ar"]
        assert select_voice(voices, "ar").id == "ar-eg"

    def test_falls_back_to_en_us(self) -> None:
        assert select_voice(self.VOICES, "ja").id == "en-us"

    def test_falls_back_to_any_english(self) -> None:
        voices = [v for v in self.VOICES if v.id != "en-us"]
        assert select_voice(voices, "ja").id == "en-gb"

    def test_falls_back_to_first(self) -> None:
        assert select_voice(self.VOICES[:1], "ja").id == "fr"

    def test_no_voices(self) -> None:
        assert select_voice([], "en") is None


# ---------------------------------------------------------------------------
# SpeechPlayback
# ---------------------------------------------------------------------------


class TestUnlock:
    async def test_unlock_plays_silence_once(self) -> None:
        playback, sink, _ = _playback()
        await playback.unlock()
        await playback.unlock()
        assert playback.unlocked
        assert sink.method_names == ["load", "play"]
        assert sink.played == []


class TestSpeak:
    async def test_plays_pre_synthesized_audio(self) -> None:
        playback, sink, synthesizer = _playback()
        outcome = await playback.speak(
            PlaybackRequest(text="hello", audio=AUDIO, content_type="audio/wav")
        )
        assert outcome is PlaybackOutcome.PLAYED
        assert sink.played == [AUDIO]
        assert synthesizer is not None and synthesizer.spoken == []

    async def test_text_goes_to_local_synthesizer(self) -> None:
        playback, sink, synthesizer = _playback()
        outcome = await playback.speak(PlaybackRequest(text="مرحبا", language="ar"))
        assert outcome is PlaybackOutcome.SYNTHESIZED
        assert synthesizer is not None and synthesizer.spoken == [("مرحبا", "ar")]
        assert sink.played == []

    async def test_decode_failure_falls_back_for_the_session(self) -> None:
        sink = MockAudioSink(fail_decode=True)
        playback, _, synthesizer = _playback(sink)
        request = PlaybackRequest(text="hello", audio=AUDIO, content_type="audio/mpeg")

        assert await playback.speak(request) is PlaybackOutcome.SYNTHESIZED
        assert not playback.remote_enabled

        loads_before = sink.method_names.count("load")
        assert await playback.speak(request) is PlaybackOutcome.SYNTHESIZED
        # The second utterance never reached the sink, only the stop re-arm did.
        assert sink.method_names.count("load") == loads_before + 1
        assert synthesizer is not None
        assert synthesizer.spoken == [("hello", "en"), ("hello", "en")]

    async def test_reset_reenables_audio(self) -> None:
        playback, _, _ = _playback(MockAudioSink(fail_decode=True))
        await playback.speak(PlaybackRequest(text="x", audio=AUDIO))
        assert not playback.remote_enabled
        playback.reset()
        assert playback.remote_enabled

    async def test_disable_remote_routes_audio_to_synthesizer(self) -> None:
        playback, sink, synthesizer = _playback()
        playback.disable_remote("backend unavailable")
        playback.disable_remote("backend unavailable")

        outcome = await playback.speak(
            PlaybackRequest(text="hello", audio=AUDIO, content_type="audio/wav")
        )

        assert outcome is PlaybackOutcome.SYNTHESIZED
        assert sink.played == []
        assert synthesizer is not None and synthesizer.spoken == [("hello", "en")]
        playback.reset()
        assert playback.remote_enabled

    async def test_audio_failure_without_text_fails(self) -> None:
        playback, _, _ = _playback(MockAudioSink(fail_decode=True))
        outcome = await playback.speak(PlaybackRequest(audio=AUDIO, content_type="audio/mpeg"))
        assert outcome is PlaybackOutcome.FAILED

    async def test_no_synthesizer_fails(self) -> None:
        playback, _, _ = _playback(with_synthesizer=False)
        assert await playback.speak(PlaybackRequest(text="hi")) is PlaybackOutcome.FAILED

    async def test_timeout_settles(self) -> None:
        sink = MockAudioSink(hang=True)
        playback, _, _ = _playback(sink, settle_timeout_s=0.05)
        outcome = await playback.speak(PlaybackRequest(audio=AUDIO, content_type="audio/wav"))
        assert outcome is PlaybackOutcome.TIMED_OUT
        assert not sink.audible
        assert not playback.is_speaking


class TestStop:
    async def test_new_utterance_stops_previous(self) -> None:
        sink = MockAudioSink(play_duration=5.0)
        playback, _, _ = _playback(sink)
        first = asyncio.create_task(playback.speak(PlaybackRequest(audio=AUDIO)))
        await asyncio.sleep(0.02)
        assert sink.audible

        second = await playback.speak(PlaybackRequest(text="next"))
        assert second is PlaybackOutcome.SYNTHESIZED
        assert await first is PlaybackOutcome.STOPPED

    async def test_stop_silences_and_rearms_sink(self) -> None:
        sink = MockAudioSink(play_duration=5.0)
        playback, _, synthesizer = _playback(sink)
        task = asyncio.create_task(playback.speak(PlaybackRequest(audio=AUDIO)))
        await asyncio.sleep(0.02)
        sink.calls.clear()

        playback.stop()

        assert not sink.audible
        assert sink.method_names == ["pause", "rewind", "load"]
        assert sink.calls[-1].args == {"content_type": "audio/wav"}
        assert synthesizer is not None and synthesizer.calls[-1].method == "cancel"
        assert await task is PlaybackOutcome.STOPPED

    async def test_stop_while_synthesizing(self) -> None:
        synthesizer = MockSynthesizer(speak_duration=5.0)
        playback, _, _ = _playback(synthesizer=synthesizer)
        task = asyncio.create_task(playback.speak(PlaybackRequest(text="long answer")))
        await asyncio.sleep(0.02)
        assert synthesizer.speaking

        playback.stop()
        assert not synthesizer.speaking
        assert await task is PlaybackOutcome.STOPPED

    async def test_cancelling_caller_stops_output(self) -> None:
        sink = MockAudioSink(play_duration=5.0)
        playback, _, _ = _playback(sink)
        task = asyncio.create_task(playback.speak(PlaybackRequest(audio=AUDIO)))
        await asyncio.sleep(0.02)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert not sink.audible
        assert not playback.is_speaking

    async def test_stop_when_idle_is_safe(self) -> None:
        playback, sink, _ = _playback()
        playback.stop()
        playback.stop()
        assert sink.method_names.count("pause") == 2

    async def test_close_releases_sink_and_synthesizer(self) -> None:
        sink = MockAudioSink(play_duration=5.0)
        playback, _, synthesizer = _playback(sink)
        task = asyncio.create_task(playback.speak(PlaybackRequest(audio=AUDIO)))
        await asyncio.sleep(0.02)

        await playback.close()

        assert await task is PlaybackOutcome.STOPPED
        assert not sink.audible
        assert sink.closed
        assert synthesizer is not None and synthesizer.closed
