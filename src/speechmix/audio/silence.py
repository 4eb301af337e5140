"""
Silence Synthesis.

WAV silence is exact to one sample: round(duration * sample_rate)
frames of the zero level (0x80 for 8-bit, 0x00 otherwise) under a
canonical header.

MP3 silence is an approximation. A single pre-encoded silent frame is
repeated ceil(duration / frame_duration) times, where one frame lasts
1152 / 44100 s (about 26.12 ms). Durations are therefore rounded up to
whole frames and the sample rate arguments do not apply.
"""
from __future__ import annotations

import math
from typing import Optional

from speechmix.audio.types import ContainerFormat, SilenceClip
from speechmix.audio.wav import build_wav_header
from speechmix.core.config import Defaults
from speechmix.core.errors import InvalidInputError

# LAME 3.100, MPEG-1 Layer III, 44.1 kHz, 32 kbps, mono
SILENT_MP3_FRAME = bytes([
    0xFF, 0xFB, 0x10, 0xC4, 0x00, 0x00, 0x00, 0x03, 0x48, 0x00, 0x00,
    0x00, 0x00, 0x4C, 0x41, 0x4D, 0x45, 0x33, 0x2E, 0x31, 0x30, 0x30,
])

MP3_FRAME_DURATION_S = Defaults.MP3_FRAME_SAMPLES / Defaults.MP3_FRAME_SAMPLE_RATE


def mp3_frame_count(duration_s: float) -> int:
    """Whole silent frames needed to cover `duration_s`."""
    return math.ceil(duration_s / MP3_FRAME_DURATION_S)


def create_silence(
    duration_s: float,
    target: ContainerFormat,
    sample_rate: int = Defaults.SILENCE_SAMPLE_RATE,
    channels: int = Defaults.SILENCE_CHANNELS,
    bit_depth: int = Defaults.SILENCE_BIT_DEPTH,
) -> Optional[SilenceClip]:
    """
    Render silence of the given duration in the given container.

    Args:
        duration_s: Seconds of silence (>= 0).
        target: Container to render.
        sample_rate: WAV only.
        channels: WAV only.
        bit_depth: WAV only.

    Returns:
        A SilenceClip, or None for containers silence cannot be made in.

    Raises:
        InvalidInputError: Negative duration.
    """
    if duration_s < 0:
        raise InvalidInputError(f"silence duration must be >= 0, got {duration_s}")

    if target is ContainerFormat.WAV:
        num_samples = round(duration_s * sample_rate)
        data_size = num_samples * channels * (bit_depth // 8)
        # 8-bit PCM is unsigned, its zero level is 0x80
        fill = b"\x80" if bit_depth == 8 else b"\x00"
        data = build_wav_header(sample_rate, channels, bit_depth, data_size) + fill * data_size
        return SilenceClip(
            duration_s=duration_s,
            format=ContainerFormat.WAV,
            data=data,
            sample_rate=sample_rate,
            channels=channels,
            bit_depth=bit_depth,
        )

    if target is ContainerFormat.MP3:
        return SilenceClip(
            duration_s=duration_s,
            format=ContainerFormat.MP3,
            data=SILENT_MP3_FRAME * mp3_frame_count(duration_s),
            sample_rate=Defaults.MP3_FRAME_SAMPLE_RATE,
            channels=1,
            bit_depth=16,
        )

    return None
