"""
RIFF/WAVE Container Parsing and Building.

Key Functions:
    parse_wav: Locate format fields and the `data` chunk of a WAV buffer
    build_wav_header: Emit a canonical 44-byte PCM header
    merge_wav: Join the PCM payloads of several WAV clips under one header
    encode_pcm16_wav: Float samples -> 16-bit PCM WAV bytes

Canonical header layout (all integers little-endian):
    0   "RIFF"      4   36 + data size    8   "WAVE"
    12  "fmt "      16  16 (chunk size)   20  1 (PCM)
    22  channels    24  sample rate       28  byte rate
    32  block align 34  bits per sample
    36  "data"      40  data size         44  payload...

TTS providers do not always emit canonical headers (LIST/INFO chunks
before `data`, oversized `data` sizes on streamed output), so parsing
walks the chunk list instead of trusting fixed offsets.
"""
from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from speechmix.audio.types import AudioClip, is_silence
from speechmix.core.errors import FormatError
from speechmix.core.logging import debug, get_logger, warn

_LOG = get_logger("speechmix.wav")

WAV_HEADER_SIZE = 44
PCM_FORMAT_TAG = 1

_FMT_BODY = struct.Struct("<HHIIHH")


@dataclass(frozen=True)
class WavInfo:
    """
    Result of parse_wav.

    Attributes:
        sample_rate: Frames per second.
        channels: Interleaved channel count.
        bit_depth: Bits per sample.
        data_offset: Byte offset of the PCM payload.
        data_length: Payload length in bytes, clamped to the buffer.
    """
    sample_rate: int
    channels: int
    bit_depth: int
    data_offset: int
    data_length: int

    @property
    def block_align(self) -> int:
        return self.channels * self.bit_depth // 8

    @property
    def frames(self) -> int:
        return self.data_length // self.block_align if self.block_align else 0


def parse_wav(data: bytes) -> WavInfo:
    """
    Parse a RIFF/WAVE buffer.

    Chunks are scanned from offset 12. Each step reads a 4-byte id and a
    4-byte size and advances 8 + size bytes, plus one pad byte when the
    size is odd. A `fmt ` chunk met on the way supplies the format; when
    there is none, the canonical offsets 22/24/34 are read instead.

    A `data` size reaching past the end of the buffer is clamped to the
    bytes actually present, so truncated files still yield their audio.

    Args:
        data: Complete WAV file contents.

    Returns:
        WavInfo describing the payload.

    Raises:
        FormatError: Missing RIFF/WAVE magic, malformed `fmt ` chunk,
            or no `data` chunk before the end of the buffer.
    """
    size = len(data)
    if size < 12 or data[0:4] != b"RIFF" or data[8:12] != b"WAVE":
        raise FormatError("not a RIFF/WAVE buffer", details={"bytes": size})

    fmt: Optional[tuple] = None
    offset = 12
    while offset + 8 <= size:
        chunk_id = data[offset:offset + 4]
        (chunk_size,) = struct.unpack_from("<I", data, offset + 4)
        debug(_LOG, "wav_chunk", id=chunk_id.decode("latin-1"), offset=offset, size=chunk_size)

        if chunk_id == b"fmt ":
            if chunk_size < _FMT_BODY.size or offset + 8 + _FMT_BODY.size > size:
                raise FormatError("truncated fmt chunk", details={"offset": offset, "size": chunk_size})
            fmt = _FMT_BODY.unpack_from(data, offset + 8)

        elif chunk_id == b"data":
            data_offset = offset + 8
            if data_offset + chunk_size > size:
                clamped = size - data_offset
                warn(_LOG, "wav_data_clamped", declared=chunk_size, available=clamped)
                chunk_size = clamped

            if fmt is not None:
                _, channels, sample_rate, _, _, bit_depth = fmt
            else:
                if size < 36:
                    raise FormatError("no fmt chunk and header too short for canonical layout")
                (channels,) = struct.unpack_from("<H", data, 22)
                (sample_rate,) = struct.unpack_from("<I", data, 24)
                (bit_depth,) = struct.unpack_from("<H", data, 34)

            return WavInfo(
                sample_rate=int(sample_rate),
                channels=int(channels),
                bit_depth=int(bit_depth),
                data_offset=data_offset,
                data_length=int(chunk_size),
            )

        offset += 8 + chunk_size
        if chunk_size % 2:
            offset += 1

    raise FormatError('no "data" chunk found in WAV buffer', details={"bytes": size})


def extract_payload(data: bytes) -> bytes:
    """Return just the PCM payload of a WAV buffer."""
    info = parse_wav(data)
    return data[info.data_offset:info.data_offset + info.data_length]


def build_wav_header(sample_rate: int, channels: int, bit_depth: int, total_data_size: int) -> bytes:
    """
    Build a canonical 44-byte PCM WAV header.

    Args:
        sample_rate: Frames per second.
        channels: Interleaved channel count.
        bit_depth: Bits per sample.
        total_data_size: Size of the payload that will follow, in bytes.

    Returns:
        44 header bytes.
    """
    block_align = channels * bit_depth // 8
    byte_rate = sample_rate * block_align
    return struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF",
        36 + total_data_size,
        b"WAVE",
        b"fmt ",
        16,
        PCM_FORMAT_TAG,
        channels,
        sample_rate,
        byte_rate,
        block_align,
        bit_depth,
        b"data",
        total_data_size,
    )


def merge_wav(clips: Sequence[AudioClip]) -> Optional[bytes]:
    """
    Concatenate the PCM payloads of WAV clips under one header.

    The first non-silence clip of at least 44 bytes decides sample
    rate, channels and bit depth for the whole output; a silence clip
    only does so when there is nothing else. Format fields of later
    clips are not consulted. Shorter clips cannot hold a header and are
    skipped.

    Args:
        clips: WAV clips in playback order (silence clips included).

    Returns:
        Merged WAV bytes, or None when no clip contributed any payload.

    Raises:
        FormatError: A clip large enough to be WAV is not parseable.
    """
    canonical: Optional[WavInfo] = None
    fallback: Optional[WavInfo] = None
    parts: List[bytes] = []
    total = 0

    for index, clip in enumerate(clips):
        data = clip.data
        if len(data) < WAV_HEADER_SIZE:
            if data:
                warn(_LOG, "wav_clip_skipped", index=index, bytes=len(data))
            continue

        info = parse_wav(data)
        if is_silence(clip):
            fallback = fallback or info
        elif canonical is None:
            canonical = info

        if info.data_length > 0:
            parts.append(data[info.data_offset:info.data_offset + info.data_length])
            total += info.data_length

    canonical = canonical or fallback
    if total == 0 or canonical is None:
        return None

    debug(_LOG, "wav_merged", clips=len(parts), bytes=total, sr=canonical.sample_rate)
    header = build_wav_header(canonical.sample_rate, canonical.channels, canonical.bit_depth, total)
    return header + b"".join(parts)


def encode_pcm16_wav(samples: np.ndarray, sample_rate: int) -> bytes:
    """
    Encode float samples as a 16-bit PCM WAV file.

    Samples are clamped to [-1, 1]; negative values scale by 32768 and
    positive values by 32767, truncating toward zero, so both -1.0 and
    1.0 map to the ends of the int16 range.

    Args:
        samples: Array shaped (channels, frames), or 1-D for mono.
        sample_rate: Frames per second.

    Returns:
        Canonical WAV bytes.
    """
    arr = np.asarray(samples, dtype=np.float32)
    if arr.ndim == 1:
        arr = arr.reshape(1, -1)

    clipped = np.clip(arr, -1.0, 1.0)
    scaled = np.where(clipped < 0, clipped * 32768.0, clipped * 32767.0)
    pcm = np.trunc(scaled).astype("<i2")

    # (channels, frames) -> frame-major interleaved
    payload = np.ascontiguousarray(pcm.T).tobytes()
    return build_wav_header(sample_rate, arr.shape[0], 16, len(payload)) + payload
