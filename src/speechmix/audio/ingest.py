"""
Clip Ingest Helpers.

Glue between a TTS provider's response and the composition engine:

    clip_from_base64: base64 payload + Content-Type -> EncodedClip
    convert_to_wav: decode a FLAC/Ogg clip and re-encode it as WAV so it
        can take the byte-level WAV path
    safe_filename: download name for a composed file

Example:
    >>> clip = clip_from_base64(resp["audio"], resp["content_type"], label=line)
    >>> if clip.format is ContainerFormat.OPAQUE:
    ...     clip = await convert_to_wav(clip, decoder)
"""
from __future__ import annotations

import base64
import binascii
import re

from speechmix.audio.decoder import BaseDecoder
from speechmix.audio.types import ContainerFormat, EncodedClip
from speechmix.audio.wav import encode_pcm16_wav
from speechmix.core.errors import DecodeError, InvalidInputError
from speechmix.core.logging import get_logger, verbose

_LOG = get_logger("speechmix.ingest")

_UNSAFE_CHARS = re.compile(r'[\\/:*?"<>|]')
_TEXT_PREVIEW_CHARS = 30


def clip_from_base64(payload: str, content_type: str, label: str = "") -> EncodedClip:
    """
    Build a clip from a base64-encoded TTS response body.

    Raises:
        InvalidInputError: `payload` is not valid base64.
    """
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidInputError(f"audio payload is not valid base64: {exc}") from exc

    return EncodedClip(
        data=data,
        format=ContainerFormat.from_mime(content_type),
        label=label,
        mime_type=content_type.split(";")[0].strip() or None,
    )


async def convert_to_wav(clip: EncodedClip, decoder: BaseDecoder) -> EncodedClip:
    """
    Re-encode an OPAQUE clip (FLAC, Ogg, ...) as 16-bit PCM WAV.

    WAV and MP3 clips are returned as they are.

    Raises:
        DecodeError: The clip could not be decoded.
    """
    if clip.format is not ContainerFormat.OPAQUE:
        return clip

    try:
        pcm = await decoder.decode(clip.data, clip.mime_type)
    except DecodeError as exc:
        raise DecodeError(
            f"{clip.mime_type} to WAV conversion failed: {exc.message}",
            clip_index=0,
        ) from exc

    verbose(_LOG, "converted_to_wav", source=clip.mime_type, sr=pcm.sample_rate, frames=pcm.frames)
    return EncodedClip(
        data=encode_pcm16_wav(pcm.samples, pcm.sample_rate),
        format=ContainerFormat.WAV,
        label=clip.label,
    )


def safe_filename(model_id: str, text: str, extension: str) -> str:
    """
    Filesystem-safe name "<model>_<text>.<ext>".

    Characters illegal on Windows are replaced by "_" and the text is
    cut to its first 30 characters.

    Example:
        >>> safe_filename("voice/a", "Hello: world?", "wav")
        'voice_a_Hello_ world_.wav'
    """
    clean_model = _UNSAFE_CHARS.sub("_", model_id or "UnknownModelId").strip()
    clean_text = _UNSAFE_CHARS.sub("_", (text or "NoText")[:_TEXT_PREVIEW_CHARS]).strip()
    return f"{clean_model}_{clean_text}.{extension}"
