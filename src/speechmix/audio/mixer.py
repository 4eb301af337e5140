"""
PCM Decode-Mix-Normalize Pipeline.

The accurate path, used whenever clips need sample-exact spacing or
overlap:

    decode all clips (concurrently)
      -> place each on a shared sample timeline
      -> add overlapping samples together
      -> scale the whole mix down if it clips
      -> encode as 16-bit PCM WAV

Timeline:
    offset[0] = 0
    offset[i] = offset[i-1] + frames[i-1] + round(gap[i-1] * sample_rate)

A negative gap pulls clip i back over the tail of clip i-1, and can
push it before the start of the timeline; every offset is then shifted
right by the same amount so the earliest clip starts at 0.

Channels:
    The output has as many channels as the widest clip. A narrower clip
    feeds output channel c from its channel min(c, channels - 1), so a
    mono clip lands on every channel of a stereo mix.

Sample rate:
    The first decoded clip decides the timeline rate; silence clips are
    skipped, and only an all-silence list falls back to clip 0's nominal
    rate. Clips decoded at another rate are rejected unless
    strict_sample_rate is off, in which case they are mixed as if they
    matched. Nothing is resampled.

Memory:
    The mix holds total_seconds * sample_rate * channels float32 values
    on top of the decoded inputs. max_output_seconds caps the timeline
    before anything is allocated.
"""
from __future__ import annotations

import asyncio
from typing import List, Optional, Sequence, Tuple

import numpy as np

from speechmix.audio.concat import normalize_gaps
from speechmix.audio.decoder import BaseDecoder
from speechmix.audio.types import (
    AudioClip,
    CompositionResult,
    ContainerFormat,
    PcmBuffer,
    SilenceClip,
)
from speechmix.audio.wav import encode_pcm16_wav
from speechmix.core.errors import (
    DecodeError,
    NoInputError,
    OutputTooLargeError,
    SampleRateMismatchError,
)
from speechmix.core.logging import debug, get_logger, verbose, warn
from speechmix.utils.timeit import timeit

_LOG = get_logger("speechmix.mixer")


async def decode_clips(
    clips: Sequence[AudioClip],
    decoder: BaseDecoder,
    max_concurrent: int = 4,
) -> List[Optional[PcmBuffer]]:
    """
    Decode every encoded clip concurrently.

    Silence clips are not decoded; their slot in the result is None.
    All decodes are awaited before any failure is reported, and the
    failure reported is the one with the lowest clip index, so the
    outcome does not depend on completion order.

    Raises:
        DecodeError: With clip_index set to the failing clip.
    """
    semaphore = asyncio.Semaphore(max_concurrent)

    async def _decode_one(index: int, clip: AudioClip) -> Optional[PcmBuffer]:
        if isinstance(clip, SilenceClip):
            return None
        async with semaphore:
            with timeit("decode") as t:
                pcm = await decoder.decode(clip.data, clip.mime_type)
        verbose(_LOG, "clip_decoded", index=index, sr=pcm.sample_rate,
                channels=pcm.channels, frames=pcm.frames, seconds=t.seconds)
        return pcm

    results = await asyncio.gather(
        *(_decode_one(i, clip) for i, clip in enumerate(clips)),
        return_exceptions=True,
    )

    for index, result in enumerate(results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            label = clips[index].label
            raise DecodeError(
                f"clip {index}{f' ({label!r})' if label else ''} could not be decoded: {result}",
                clip_index=index,
            ) from result

    return list(results)


def compute_offsets(lengths: Sequence[int], gaps: Sequence[float], sample_rate: int) -> List[int]:
    """
    Start frame of each clip on the shared timeline.

    Args:
        lengths: Frame count of each clip.
        gaps: Seconds between clip i and i+1 (negative = overlap).
        sample_rate: Timeline rate.

    Returns:
        Offsets, shifted so the smallest is 0.
    """
    if not lengths:
        return []
    offsets = [0]
    for i in range(1, len(lengths)):
        offsets.append(offsets[i - 1] + lengths[i - 1] + round(gaps[i - 1] * sample_rate))
    shift = max(0, -min(offsets))
    return [offset + shift for offset in offsets]


def mix_buffers(
    buffers: Sequence[PcmBuffer],
    offsets: Sequence[int],
    channels: int,
    total_frames: int,
) -> np.ndarray:
    """
    Sum clips into one (channels, total_frames) float32 timeline.

    Samples are added, never overwritten, so overlapping clips mix.
    """
    out = np.zeros((channels, total_frames), dtype=np.float32)
    for buf, offset in zip(buffers, offsets):
        if buf.frames == 0 or buf.channels == 0:
            continue
        end = offset + buf.frames
        for c in range(channels):
            out[c, offset:end] += buf.samples[min(c, buf.channels - 1)]
    return out


def normalize_peak(samples: np.ndarray) -> Tuple[np.ndarray, float]:
    """
    Scale the whole mix down so its peak is at most 1.0.

    One gain for every sample of every channel. A mix already within
    [-1, 1] is returned as the same array, untouched.

    Returns:
        (samples, gain) where gain is 1.0 when nothing was done.
    """
    peak = float(np.max(np.abs(samples))) if samples.size else 0.0
    if peak <= 1.0:
        return samples, 1.0
    gain = 1.0 / peak
    return samples * gain, gain


async def mix_clips(
    clips: Sequence[AudioClip],
    gaps: Optional[Sequence[float]],
    decoder: BaseDecoder,
    *,
    strict_sample_rate: bool = True,
    max_concurrent_decodes: int = 4,
    max_output_seconds: Optional[float] = None,
) -> CompositionResult:
    """
    Decode, place, mix and normalize clips into one WAV.

    Args:
        clips: Clips in playback order; any decodable container.
        gaps: Seconds between clip i and i+1 (negative = overlap), or
            None for none.
        decoder: Decode capability used for every encoded clip.
        strict_sample_rate: Reject clips decoded at a rate other than
            the first decoded clip's.
        max_concurrent_decodes: Decodes in flight at once.
        max_output_seconds: Refuse timelines longer than this.

    Returns:
        CompositionResult (audio/wav, path "mix") whatever the inputs were.

    Raises:
        NoInputError: No clips, or the timeline is empty.
        InvalidInputError: Wrong number of gaps.
        DecodeError: A clip could not be decoded.
        SampleRateMismatchError: Clip rates differ and strict_sample_rate.
        OutputTooLargeError: Timeline longer than max_output_seconds.
    """
    if not clips:
        raise NoInputError("no clips to mix")
    gap_list = normalize_gaps(len(clips), gaps)

    decoded = await decode_clips(clips, decoder, max_concurrent=max_concurrent_decodes)

    # Silence takes whatever rate the timeline has, so only decoded clips set it
    sample_rate = next(
        (pcm.sample_rate for pcm in decoded if pcm is not None),
        clips[0].sample_rate,
    )

    mismatched = {
        i: pcm.sample_rate for i, pcm in enumerate(decoded)
        if pcm is not None and pcm.sample_rate != sample_rate
    }
    if mismatched:
        if strict_sample_rate:
            raise SampleRateMismatchError(
                f"clips decoded at different sample rates (timeline is {sample_rate} Hz)",
                details={"sample_rate": sample_rate, "mismatched": mismatched},
            )
        warn(_LOG, "sample_rate_mismatch_ignored", sample_rate=sample_rate, clips=sorted(mismatched))

    buffers: List[PcmBuffer] = []
    for clip, pcm in zip(clips, decoded):
        if pcm is None:
            # Silence is rendered at the timeline rate, never decoded
            frames = round(clip.duration_s * sample_rate)
            pcm = PcmBuffer.silence(frames, sample_rate, channels=clip.channels)
        buffers.append(pcm)

    channels = max(buf.channels for buf in buffers)
    offsets = compute_offsets([buf.frames for buf in buffers], gap_list, sample_rate)
    total_frames = max(offset + buf.frames for offset, buf in zip(offsets, buffers))
    debug(_LOG, "timeline", offsets=offsets, frames=total_frames, channels=channels, sr=sample_rate)

    if total_frames <= 0 or channels <= 0:
        raise NoInputError("clips contain no audio")
    if max_output_seconds is not None and total_frames > max_output_seconds * sample_rate:
        raise OutputTooLargeError(
            f"mixed output would be {total_frames / sample_rate:.1f}s, limit is {max_output_seconds:.1f}s",
            details={"frames": total_frames, "sample_rate": sample_rate, "channels": channels},
        )

    mixed = mix_buffers(buffers, offsets, channels, total_frames)
    peak = float(np.max(np.abs(mixed)))
    mixed, gain = normalize_peak(mixed)
    verbose(_LOG, "mixed", frames=total_frames, channels=channels, peak=round(peak, 4), gain=round(gain, 4))

    return CompositionResult(
        data=encode_pcm16_wav(mixed, sample_rate),
        mime_type=ContainerFormat.WAV.mime_type,
        format=ContainerFormat.WAV,
        path="mix",
        gain=gain,
        meta={
            "sample_rate": sample_rate,
            "channels": channels,
            "frames": total_frames,
            "peak": peak,
        },
    )
