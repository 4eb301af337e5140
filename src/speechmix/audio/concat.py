"""
Simple Concatenation (fast path).

Joins same-format clips at the byte level, inserting rendered silence
for positive gaps. Nothing is decoded, so this is cheap and lossless,
but it cannot express overlap; negative gaps belong to the mixing
pipeline (audio/mixer.py).

    WAV    -> merge_wav, one header over all payloads
    MP3    -> merge_mp3, ID3 tags stripped at the seams
    OPAQUE -> refused for more than one clip unless explicitly allowed
"""
from __future__ import annotations

from typing import List, Optional, Sequence

from speechmix.audio.mp3 import merge_mp3
from speechmix.audio.silence import create_silence
from speechmix.audio.types import (
    AudioClip,
    CompositionResult,
    ContainerFormat,
    EncodedClip,
    is_silence,
)
from speechmix.audio.wav import merge_wav, parse_wav
from speechmix.core.config import SilenceConfig
from speechmix.core.errors import (
    FormatError,
    InvalidInputError,
    NoInputError,
    UnsupportedOperationError,
)
from speechmix.core.logging import get_logger, verbose, warn

_LOG = get_logger("speechmix.concat")


def normalize_gaps(clip_count: int, gaps: Optional[Sequence[float]]) -> List[float]:
    """
    Validate the gap list against the clip count.

    None means "no gaps" and becomes all zeros.

    Raises:
        InvalidInputError: Length is not clip_count - 1.
    """
    expected = max(clip_count - 1, 0)
    if gaps is None:
        return [0.0] * expected
    out = [float(g) for g in gaps]
    if len(out) != expected:
        raise InvalidInputError(
            f"expected {expected} gaps for {clip_count} clips, got {len(out)}",
            details={"clips": clip_count, "gaps": len(out)},
        )
    return out


def _wav_silence_format(clips: Sequence[AudioClip], defaults: SilenceConfig) -> SilenceConfig:
    # merge_wav writes the first non-silence clip's format into the output
    # header, so silence must be rendered in that same format to keep its length
    for clip in clips:
        if isinstance(clip, EncodedClip) and len(clip.data) >= 44:
            info = parse_wav(clip.data)
            return SilenceConfig(sample_rate=info.sample_rate, channels=info.channels, bit_depth=info.bit_depth)
    return defaults


def concatenate(
    clips: Sequence[AudioClip],
    gaps: Optional[Sequence[float]],
    target: ContainerFormat,
    allow_opaque: bool = False,
    silence: Optional[SilenceConfig] = None,
) -> CompositionResult:
    """
    Join clips byte-for-byte with silence inserted for positive gaps.

    Args:
        clips: Clips in playback order.
        gaps: Seconds between clip i and i+1 (len(clips) - 1 values, or
            None for none). Must be >= 0 on this path.
        target: Container of every non-silence clip.
        allow_opaque: Permit plain byte joining of OPAQUE clips. The
            result is only valid for formats whose frames can be
            concatenated; silence is not inserted.
        silence: Fallback format for WAV silence when no WAV clip
            carries one. WAV silence clips, supplied or inserted, are
            rendered in the format of the first non-silence clip.

    Returns:
        CompositionResult with path "concat".

    Raises:
        NoInputError: No clips, or no audio bytes at all.
        InvalidInputError: Wrong number of gaps.
        UnsupportedOperationError: Negative gap, or several OPAQUE clips
            without allow_opaque.
        FormatError: A clip is not in `target` or is malformed.
    """
    if not clips:
        raise NoInputError("no clips to concatenate")
    gap_list = normalize_gaps(len(clips), gaps)

    overlaps = [i for i, g in enumerate(gap_list) if g < 0]
    if overlaps:
        raise UnsupportedOperationError(
            "negative gaps need the mixing pipeline",
            details={"gap_indexes": overlaps},
        )

    # Silence clips are checked too: their bytes are spliced like any other
    for index, clip in enumerate(clips):
        if clip.format is not target:
            kind = "silence clip" if is_silence(clip) else "clip"
            raise FormatError(
                f"{kind} {index} is {clip.format.value}, expected {target.value}",
                details={"clip_index": index},
            )

    if target is ContainerFormat.OPAQUE:
        return _concatenate_opaque(clips, gap_list, allow_opaque)

    silence_fmt = silence or SilenceConfig()
    if target is ContainerFormat.WAV:
        silence_fmt = _wav_silence_format(clips, silence_fmt)

    parts: List[AudioClip] = []
    for index, clip in enumerate(clips):
        if target is ContainerFormat.WAV and is_silence(clip):
            # merge_wav only keeps payloads, so silence must already match the header
            clip = create_silence(
                clip.duration_s,
                target,
                sample_rate=silence_fmt.sample_rate,
                channels=silence_fmt.channels,
                bit_depth=silence_fmt.bit_depth,
            )
        parts.append(clip)
        if index < len(gap_list) and gap_list[index] > 0:
            gap_clip = create_silence(
                gap_list[index],
                target,
                sample_rate=silence_fmt.sample_rate,
                channels=silence_fmt.channels,
                bit_depth=silence_fmt.bit_depth,
            )
            if gap_clip is not None:
                parts.append(gap_clip)

    verbose(_LOG, "concat_parts", target=target.value, clips=len(clips), parts=len(parts))

    if target is ContainerFormat.MP3:
        merged = merge_mp3(parts)
        if not merged:
            raise NoInputError("all MP3 clips were empty")
        return CompositionResult(data=merged, mime_type=target.mime_type, format=target)

    merged_wav = merge_wav(parts)
    if merged_wav is None:
        raise NoInputError("no valid WAV audio found")
    return CompositionResult(data=merged_wav, mime_type=target.mime_type, format=target)


def _concatenate_opaque(
    clips: Sequence[AudioClip],
    gaps: Sequence[float],
    allow_opaque: bool,
) -> CompositionResult:
    first = clips[0]
    mime = first.mime_type or ContainerFormat.OPAQUE.mime_type

    if len(clips) == 1:
        if not first.data:
            raise NoInputError("clip is empty")
        return CompositionResult(data=first.data, mime_type=mime, format=ContainerFormat.OPAQUE)

    if not allow_opaque:
        raise UnsupportedOperationError(
            f"cannot splice {len(clips)} clips of unknown container {mime!r}",
            details={"mime_type": mime},
        )

    if any(g > 0 for g in gaps):
        warn(_LOG, "opaque_gaps_ignored", mime=mime, gaps=sum(1 for g in gaps if g > 0))

    data = b"".join(clip.data for clip in clips)
    if not data:
        raise NoInputError("all clips were empty")
    return CompositionResult(data=data, mime_type=mime, format=ContainerFormat.OPAQUE)
