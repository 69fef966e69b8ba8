"""PULSE PCM Encoder — float buffers to canonical 16-bit WAV bytes.

The layout is fixed: a 44-byte RIFF header (``fmt `` chunk of 16 bytes,
PCM format 1, 16 bits) followed by little-endian interleaved int16 samples.
The same buffer always encodes to the same bytes.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

import numpy as np

from pulse.hands.nodes import AudioArray

WAV_HEADER_SIZE = 44
BITS_PER_SAMPLE = 16
PCM_FORMAT = 1

_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")


@dataclass(frozen=True)
class WavHeader:
    """Fields of a canonical 44-byte PCM header."""

    riff_size: int
    audio_format: int
    channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_size: int

    @property
    def frames(self) -> int:
        return self.data_size // self.block_align if self.block_align else 0

    @property
    def duration(self) -> float:
        return self.frames / self.sample_rate if self.sample_rate else 0.0


def to_pcm16(buffer: AudioArray) -> np.ndarray:
    """Clamp to [-1, 1] and scale asymmetrically: -1 → -32768, +1 → 32767.

    Values are truncated toward zero, matching a DataView int16 store.
    """
    clean = np.clip(np.nan_to_num(buffer, nan=0.0, posinf=1.0, neginf=-1.0), -1.0, 1.0)
    scaled = np.where(clean < 0, clean * 0x8000, clean * 0x7FFF)
    return np.trunc(scaled).astype("<i2")


def encode_wav(buffer: AudioArray, sample_rate: int) -> bytes:
    """Encode a ``(frames, channels)`` (or 1-D mono) float buffer as a WAV file."""
    data = np.asarray(buffer, dtype=np.float64)
    if data.ndim == 1:
        data = data[:, None]
    if data.ndim != 2:
        msg = f"Expected a (frames, channels) buffer, got shape {data.shape}"
        raise ValueError(msg)
    if sample_rate <= 0:
        msg = f"Sample rate must be > 0, got {sample_rate}"
        raise ValueError(msg)

    frames, channels = data.shape
    block_align = channels * BITS_PER_SAMPLE // 8
    data_size = frames * block_align

    header = _HEADER.pack(
        b"RIFF",
        36 + data_size,
        b"WAVE",
        b"fmt ",
        16,
        PCM_FORMAT,
        channels,
        sample_rate,
        sample_rate * block_align,
        block_align,
        BITS_PER_SAMPLE,
        b"data",
        data_size,
    )
    # C-order rows are frames, so tobytes() interleaves channels
    return header + np.ascontiguousarray(to_pcm16(data)).tobytes()


def read_wav_header(data: bytes) -> WavHeader:
    """Parse the header written by ``encode_wav``."""
    if len(data) < WAV_HEADER_SIZE:
        msg = f"WAV data too short: {len(data)} bytes"
        raise ValueError(msg)
    (
        riff,
        riff_size,
        wave,
        fmt,
        fmt_size,
        audio_format,
        channels,
        sample_rate,
        byte_rate,
        block_align,
        bits,
        data_tag,
        data_size,
    ) = _HEADER.unpack_from(data)
    if riff != b"RIFF" or wave != b"WAVE" or fmt != b"fmt " or data_tag != b"data" or fmt_size != 16:
        msg = "Not a canonical PCM WAV header"
        raise ValueError(msg)
    return WavHeader(
        riff_size=riff_size,
        audio_format=audio_format,
        channels=channels,
        sample_rate=sample_rate,
        byte_rate=byte_rate,
        block_align=block_align,
        bits_per_sample=bits,
        data_size=data_size,
    )
