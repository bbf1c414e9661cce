"""AudioFrame data model for captured microphone audio."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AudioFrame:
    """A single block of captured PCM audio.

    Frames are appended to the capture buffer in arrival order and fed to
    the loudness analyser.
    """

    data: bytes
    """Raw audio bytes (PCM, little-endian)."""

    sample_rate: int = 16000
    """Sample rate in Hz."""

    channels: int = 1
    """Number of audio channels."""

    sample_width: int = 2
    """Bytes per sample (2 = 16-bit PCM)."""

    def __post_init__(self) -> None:
        if not isinstance(self.data, bytes):
            raise ValueError("AudioFrame.data must be bytes")
        if self.sample_rate <= 0 or self.sample_rate > 192_000:
            raise ValueError(f"sample_rate must be between 1 and 192000, got {self.sample_rate}")
        if self.channels not in (1, 2):
            raise ValueError(f"channels must be 1 or 2, got {self.channels}")
        if self.sample_width != 2:
            raise ValueError(f"only 16-bit PCM is supported, got sample_width={self.sample_width}")
        frame_align = self.sample_width * self.channels
        if len(self.data) % frame_align != 0:
            raise ValueError(
                f"data length ({len(self.data)}) must be divisible by "
                f"sample_width * channels ({frame_align})"
            )

    @property
    def duration_ms(self) -> float:
        n_samples = len(self.data) // (self.sample_width * self.channels)
        return n_samples / self.sample_rate * 1000.0
