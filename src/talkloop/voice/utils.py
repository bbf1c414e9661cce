"""Shared audio utilities for the voice subsystem."""

from __future__ import annotations

import io
import struct
import wave


def wrap_wav(pcm_data: bytes, sample_rate: int, num_channels: int = 1) -> bytes:
    """Wrap raw PCM S16LE data in a minimal WAV header."""
    bits_per_sample = 16
    byte_rate = sample_rate * num_channels * bits_per_sample // 8
    block_align = num_channels * bits_per_sample // 8
    data_size = len(pcm_data)
    header = struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF",
        36 + data_size,
        b"WAVE",
        b"fmt ",
        16,
        1,  # PCM format
        num_channels,
        sample_rate,
        byte_rate,
        block_align,
        bits_per_sample,
        b"data",
        data_size,
    )
    return header + pcm_data


def read_wav(data: bytes) -> tuple[bytes, int, int]:
    """Decode a 16-bit PCM WAV payload.

    Returns:
        ``(pcm_bytes, sample_rate, channels)``.

    Raises:
        ValueError: The payload is not uncompressed 16-bit PCM WAV.
    """
    try:
        with wave.open(io.BytesIO(data), "rb") as wf:
            if wf.getsampwidth() != 2:
                raise ValueError(f"WAV must be 16-bit PCM (got {wf.getsampwidth() * 8}-bit)")
            if wf.getcomptype() != "NONE":
                raise ValueError(f"WAV must be uncompressed PCM (got {wf.getcompname()})")
            return wf.readframes(wf.getnframes()), wf.getframerate(), wf.getnchannels()
    except (wave.Error, EOFError) as exc:
        raise ValueError(f"Invalid WAV payload: {exc}") from exc


def silent_wav(sample_rate: int = 16000, duration_ms: int = 0) -> bytes:
    """A silent (possibly zero-length) WAV payload."""
    n_samples = sample_rate * duration_ms // 1000
    return wrap_wav(b"\x00\x00" * n_samples, sample_rate)
