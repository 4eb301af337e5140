"""
Decode Capability.

The mixing pipeline needs compressed clips as linear PCM but does not
care how that happens. It talks to a BaseDecoder handed to it by the
caller, so tests can inject a deterministic double and services can pick
a backend from settings.

Decoders must be stateless and reentrant: the pipeline decodes all clips
of one composition concurrently through the same instance.

Backends:
    soundfile: libsndfile via python-soundfile. Reads WAV, FLAC,
        Ogg/Vorbis/Opus and (libsndfile >= 1.1) MP3.

Implementing a New Decoder:
    1. Subclass BaseDecoder
    2. Implement async decode(data, mime_hint) -> PcmBuffer
    3. Raise DecodeError on failure (the pipeline adds the clip index)
    4. Register it in _DECODERS
"""
from __future__ import annotations

import asyncio
import io
from typing import Dict, Optional, Type

import soundfile as sf

from speechmix.audio.types import PcmBuffer
from speechmix.core.config import ConfigValidationError, Settings
from speechmix.core.errors import DecodeError
from speechmix.core.logging import debug, get_logger


class BaseDecoder:
    """
    Abstract decode capability.

    Attributes:
        name: Backend identifier used in settings (decoder.backend).
        logger: Logger instance for this decoder.
    """
    name: str = "base"

    def __init__(self) -> None:
        self.logger = get_logger(f"speechmix.decoder.{self.name}")

    async def decode(self, data: bytes, mime_hint: Optional[str] = None) -> PcmBuffer:
        """
        Decode container bytes to PCM.

        Args:
            data: Complete encoded clip.
            mime_hint: Content-Type of `data`, if known.

        Returns:
            PcmBuffer with samples shaped (channels, frames).

        Raises:
            DecodeError: The bytes cannot be decoded.
        """
        raise NotImplementedError


class SoundfileDecoder(BaseDecoder):
    """
    Decoder backed by libsndfile.

    The blocking read runs in a worker thread so several clips can be
    decoded at once without stalling the event loop.
    """
    name = "soundfile"

    async def decode(self, data: bytes, mime_hint: Optional[str] = None) -> PcmBuffer:
        return await asyncio.to_thread(self.decode_sync, data, mime_hint)

    def decode_sync(self, data: bytes, mime_hint: Optional[str] = None) -> PcmBuffer:
        """Blocking variant of decode()."""
        if not data:
            raise DecodeError("empty audio buffer", details={"mime_type": mime_hint})

        try:
            wav, sr = sf.read(io.BytesIO(data), dtype="float32", always_2d=True)
        except (sf.SoundFileError, RuntimeError) as exc:
            raise DecodeError(
                f"cannot decode {mime_hint or 'audio'}: {exc}",
                details={"mime_type": mime_hint, "bytes": len(data)},
            ) from exc

        # soundfile returns (frames, channels)
        pcm = PcmBuffer(sample_rate=int(sr), samples=wav.T)
        debug(self.logger, "decoded", sr=pcm.sample_rate, channels=pcm.channels, frames=pcm.frames)
        return pcm


_DECODERS: Dict[str, Type[BaseDecoder]] = {
    SoundfileDecoder.name: SoundfileDecoder,
}


def get_decoder(settings: Optional[Settings] = None) -> BaseDecoder:
    """
    Create the decoder named by settings (decoder.backend).

    Raises:
        ConfigValidationError: Unknown backend name.
    """
    backend = (settings or Settings()).decoder_backend
    try:
        cls = _DECODERS[backend]
    except KeyError:
        raise ConfigValidationError(
            f"unknown decoder backend {backend!r}; available: {', '.join(sorted(_DECODERS))}"
        ) from None
    return cls()
