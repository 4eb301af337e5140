"""
speechmix: Speech Clip Composition Engine.

Turns an ordered list of independently synthesized speech clips, plus
the timing gaps between them, into a single audio file.

Two paths:
    - Byte-level concatenation of same-format WAV or MP3 clips, with
      silence inserted for positive gaps (lossless, keeps the container)
    - Decode to PCM, place on a shared timeline, mix overlaps, normalize
      and encode as WAV (any negative or non-zero gap)

Example Usage:
    >>> import asyncio
    >>> from speechmix.audio import EncodedClip, ContainerFormat
    >>> from speechmix.services import ComposeService
    >>>
    >>> clips = [EncodedClip(open(p, "rb").read(), ContainerFormat.WAV) for p in paths]
    >>> result = asyncio.run(ComposeService().compose(clips, [0.5, -0.3]))
    >>> with open(f"out.{result.extension}", "wb") as f:
    ...     f.write(result.data)
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
