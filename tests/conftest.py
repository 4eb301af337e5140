"""Shared fixtures: synthetic WAV/MP3 bytes and a deterministic decoder."""
from __future__ import annotations

import struct
from typing import Dict, List, Optional, Tuple

import numpy as np
import pytest

from speechmix.audio.decoder import BaseDecoder
from speechmix.audio.types import PcmBuffer
from speechmix.core.errors import DecodeError


def build_wav(
    payload: bytes,
    sample_rate: int = 44100,
    channels: int = 1,
    bit_depth: int = 16,
    extra_chunks: bytes = b"",
    declared_size: Optional[int] = None,
) -> bytes:
    """Hand-packed WAV with optional chunks between fmt and data."""
    block_align = channels * bit_depth // 8
    fmt = struct.pack("<HHIIHH", 1, channels, sample_rate, sample_rate * block_align, block_align, bit_depth)
    size = len(payload) if declared_size is None else declared_size
    body = b"WAVE" + b"fmt " + struct.pack("<I", 16) + fmt + extra_chunks + b"data" + struct.pack("<I", size) + payload
    return b"RIFF" + struct.pack("<I", len(body)) + body


def id3v2_tag(body_size: int) -> bytes:
    """ID3v2.4 header declaring `body_size` bytes of (zeroed) frames."""
    size = bytes([
        (body_size >> 21) & 0x7F,
        (body_size >> 14) & 0x7F,
        (body_size >> 7) & 0x7F,
        body_size & 0x7F,
    ])
    return b"ID3\x04\x00\x00" + size + bytes(body_size)


def id3v1_tag() -> bytes:
    return b"TAG" + bytes(125)


class FakeDecoder(BaseDecoder):
    """
    Decoder double keyed by clip bytes.

    Unknown bytes raise DecodeError, like a real backend would.
    """
    name = "fake"

    def __init__(self, table: Dict[bytes, PcmBuffer]):
        super().__init__()
        self.table = table
        self.calls: List[Tuple[bytes, Optional[str]]] = []

    async def decode(self, data: bytes, mime_hint: Optional[str] = None) -> PcmBuffer:
        self.calls.append((data, mime_hint))
        try:
            return self.table[data]
        except KeyError:
            raise DecodeError("unknown test clip") from None


def constant_pcm(value: float, seconds: float, sample_rate: int = 44100, channels: int = 1) -> PcmBuffer:
    frames = round(seconds * sample_rate)
    return PcmBuffer(sample_rate, np.full((channels, frames), value, dtype=np.float32))


@pytest.fixture
def wav_factory():
    return build_wav


@pytest.fixture
def fake_decoder_factory():
    return FakeDecoder
