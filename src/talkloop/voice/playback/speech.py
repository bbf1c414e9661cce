"""Speech playback coordinator."""

from __future__ import annotations

import asyncio
import logging

from talkloop.core.errors import PlaybackError
from talkloop.voice.playback.base import (
    AudioSink,
    LocalSynthesizer,
    PlaybackConfig,
    PlaybackOutcome,
    PlaybackRequest,
)
from talkloop.voice.utils import silent_wav

logger = logging.getLogger("talkloop.playback")


class SpeechPlayback:
    """Plays one utterance at a time through a single persistent sink.

    The sink is never recreated: :meth:`unlock` primes it with a silent
    payload on the first user gesture, and :meth:`stop` re-arms it with
    that payload instead of tearing it down. Every :meth:`speak` settles
    within ``settle_timeout_s``.

    If the sink fails once, or the owner calls :meth:`disable_remote`,
    pre-synthesized audio is ignored for the rest of the session and every
    utterance goes to the local synthesizer.
    """

    def __init__(
        self,
        sink: AudioSink,
        synthesizer: LocalSynthesizer | None = None,
        config: PlaybackConfig | None = None,
    ) -> None:
        self._sink = sink
        self._synthesizer = synthesizer
        self._config = config or PlaybackConfig()
        self._silence = silent_wav(self._config.silent_sample_rate)
        self._remote_enabled = True
        self._unlocked = False
        self._task: asyncio.Task[PlaybackOutcome] | None = None

    @property
    def remote_enabled(self) -> bool:
        """False once the primary (pre-synthesized) path has failed."""
        return self._remote_enabled

    def disable_remote(self, reason: str) -> None:
        """Route every later utterance to the local synthesizer until :meth:`reset`."""
        if self._remote_enabled:
            self._remote_enabled = False
            logger.warning("Primary speech path disabled for this session: %s", reason)

    @property
    def unlocked(self) -> bool:
        return self._unlocked

    @property
    def is_speaking(self) -> bool:
        return self._task is not None and not self._task.done()

    async def unlock(self) -> None:
        """Prime the sink so later programmatic playback is permitted."""
        if self._unlocked:
            return
        try:
            self._sink.load(self._silence, "audio/wav")
            await self._sink.play()
        except PlaybackError as exc:
            logger.warning("Could not prime playback sink: %s", exc)
            return
        self._unlocked = True
        logger.debug("Playback sink unlocked")

    async def speak(self, request: PlaybackRequest) -> PlaybackOutcome:
        """Play *request*, stopping any utterance already in progress."""
        self.stop()
        task = asyncio.get_running_loop().create_task(
            self._deliver(request), name="talkloop-speech"
        )
        self._task = task
        try:
            done, _ = await asyncio.wait({task}, timeout=self._config.settle_timeout_s)
        except asyncio.CancelledError:
            if self._task is task:
                self.stop()
            else:
                task.cancel()
            raise

        if not done:
            logger.warning(
                "Playback did not settle within %.1fs, stopping", self._config.settle_timeout_s
            )
            if self._task is task:
                self.stop()
            else:
                task.cancel()
            return PlaybackOutcome.TIMED_OUT

        if self._task is task:
            self._task = None
        if task.cancelled():
            return PlaybackOutcome.STOPPED
        return task.result()

    def stop(self) -> None:
        """Silence output now and keep the sink warm for the next utterance."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
        try:
            self._sink.pause()
            self._sink.rewind()
            self._sink.load(self._silence, "audio/wav")
        except PlaybackError as exc:
            logger.warning("Error re-arming playback sink: %s", exc)
        if self._synthesizer is not None:
            self._synthesizer.cancel()

    def reset(self) -> None:
        """Stop playback and re-enable the primary path (new session)."""
        self.stop()
        self._remote_enabled = True

    async def close(self) -> None:
        self.stop()
        await self._sink.close()
        if self._synthesizer is not None:
            await self._synthesizer.close()

    async def _deliver(self, request: PlaybackRequest) -> PlaybackOutcome:
        if request.has_audio and self._remote_enabled:
            try:
                self._sink.load(request.audio or b"", request.content_type or "audio/mpeg")
                await self._sink.play()
                return PlaybackOutcome.PLAYED
            except PlaybackError as exc:
                self.disable_remote(f"audio playback failed ({exc})")

        text = request.text.strip()
        if not text:
            return PlaybackOutcome.FAILED
        if self._synthesizer is None:
            logger.warning("No local synthesizer configured, dropping utterance")
            return PlaybackOutcome.FAILED
        try:
            await self._synthesizer.speak(text, request.language)
        except PlaybackError:
            logger.exception("Local synthesis failed")
            return PlaybackOutcome.FAILED
        return PlaybackOutcome.SYNTHESIZED
