"""
Clip, Buffer and Result Types.

    ContainerFormat: closed set of containers the engine understands
    EncodedClip: audio bytes produced outside the engine (TTS output)
    SilenceClip: silence rendered by the engine itself
    AudioClip: EncodedClip | SilenceClip
    PcmBuffer: decoded linear PCM, only alive inside the mixing pipeline
    CompositionResult: what a composition call returns

Silence is a separate clip variant rather than a flag on the bytes:
the MP3 splicer passes it through untouched and the mixing pipeline
renders it at the timeline's own sample rate instead of decoding it.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

import numpy as np


class ContainerFormat(str, Enum):
    """
    Audio container understood by the engine.

    OPAQUE covers everything else (FLAC, Ogg/Opus, ...). Those bytes can
    still be decoded by the pipeline, but the byte-level paths refuse to
    splice them.
    """
    WAV = "wav"
    MP3 = "mp3"
    OPAQUE = "opaque"

    @property
    def mime_type(self) -> str:
        return _MIME_TYPES[self]

    @property
    def extension(self) -> str:
        return _EXTENSIONS[self]

    @classmethod
    def from_mime(cls, content_type: Optional[str]) -> "ContainerFormat":
        """
        Map a Content-Type to a container.

        Parameters after ';' are ignored and the match is
        case-insensitive.

        Examples:
            >>> ContainerFormat.from_mime("audio/mpeg")
            <ContainerFormat.MP3: 'mp3'>
            >>> ContainerFormat.from_mime("audio/wav; codecs=1")
            <ContainerFormat.WAV: 'wav'>
            >>> ContainerFormat.from_mime("audio/flac")
            <ContainerFormat.OPAQUE: 'opaque'>
        """
        if not content_type:
            return cls.OPAQUE
        base = content_type.split(";")[0].strip().lower()
        if base in _WAV_MIMES:
            return cls.WAV
        if base in _MP3_MIMES:
            return cls.MP3
        return cls.OPAQUE


_MIME_TYPES = {
    ContainerFormat.WAV: "audio/wav",
    ContainerFormat.MP3: "audio/mpeg",
    ContainerFormat.OPAQUE: "application/octet-stream",
}

_EXTENSIONS = {
    ContainerFormat.WAV: "wav",
    ContainerFormat.MP3: "mp3",
    ContainerFormat.OPAQUE: "bin",
}

_WAV_MIMES = frozenset({"audio/wav", "audio/x-wav", "audio/wave", "audio/vnd.wave"})
_MP3_MIMES = frozenset({"audio/mpeg", "audio/mp3", "audio/mpeg3", "audio/x-mpeg"})


@dataclass(frozen=True)
class EncodedClip:
    """
    Audio bytes produced outside the engine.

    Attributes:
        data: Container bytes exactly as received.
        format: Container of `data`.
        label: Free text for logs (usually the line that was spoken).
        mime_type: Original Content-Type; used as the decode hint.
            Defaults to the container's canonical MIME type.
    """
    data: bytes
    format: ContainerFormat
    label: str = ""
    mime_type: Optional[str] = None

    def __post_init__(self) -> None:
        if self.mime_type is None:
            object.__setattr__(self, "mime_type", self.format.mime_type)

    def __len__(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class SilenceClip:
    """
    Silence rendered by the engine (see audio/silence.py).

    Attributes:
        duration_s: Requested duration. The rendered MP3 bytes may be
            slightly longer since they are whole frames.
        format: Container of `data`.
        data: Rendered container bytes.
        sample_rate: Rate of the rendered WAV payload.
        channels: Channel count of the rendered WAV payload.
        bit_depth: Bits per sample of the rendered WAV payload.
        label: Free text for logs.
    """
    duration_s: float
    format: ContainerFormat
    data: bytes
    sample_rate: int = 44100
    channels: int = 1
    bit_depth: int = 16
    label: str = "silence"

    @property
    def mime_type(self) -> str:
        return self.format.mime_type

    def __len__(self) -> int:
        return len(self.data)


AudioClip = Union[EncodedClip, SilenceClip]


def is_silence(clip: AudioClip) -> bool:
    return isinstance(clip, SilenceClip)


@dataclass
class PcmBuffer:
    """
    Decoded linear PCM.

    Attributes:
        sample_rate: Frames per second.
        samples: float32 array shaped (channels, frames), values
            nominally in [-1, 1].
    """
    sample_rate: int
    samples: np.ndarray

    def __post_init__(self) -> None:
        samples = np.asarray(self.samples, dtype=np.float32)
        if samples.ndim == 1:
            samples = samples.reshape(1, -1)
        if samples.ndim != 2:
            raise ValueError(f"PCM samples must be 1-D or 2-D, got shape {samples.shape}")
        self.samples = samples

    @property
    def channels(self) -> int:
        return int(self.samples.shape[0])

    @property
    def frames(self) -> int:
        return int(self.samples.shape[1])

    @property
    def duration_s(self) -> float:
        return self.frames / self.sample_rate if self.sample_rate else 0.0

    @classmethod
    def silence(cls, frames: int, sample_rate: int, channels: int = 1) -> "PcmBuffer":
        return cls(sample_rate=sample_rate, samples=np.zeros((channels, max(frames, 0)), dtype=np.float32))


@dataclass
class CompositionResult:
    """
    Output of one composition call.

    Attributes:
        data: Output container bytes.
        mime_type: "audio/wav", "audio/mpeg", or an opaque clip's own type.
        format: Container of `data`.
        path: "concat" (byte-level fast path) or "mix" (decode pipeline).
        gain: Normalization gain applied by the mix path (1.0 = none).
    """
    data: bytes
    mime_type: str
    format: ContainerFormat
    path: str = "concat"
    gain: float = 1.0
    meta: dict = field(default_factory=dict)

    @property
    def extension(self) -> str:
        return self.format.extension

    def __len__(self) -> int:
        return len(self.data)
