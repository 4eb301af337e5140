"""
MP3 Frame Stream Splicing.

MP3 frames are self-delimiting, so two streams can be joined by plain
byte concatenation once the metadata blocks between them are removed:

    ID3v2: leading "ID3" header, 10 bytes + synchsafe size
    ID3v1: trailing 128-byte block starting with "TAG"

The first clip keeps its ID3v2 tag and the last clip keeps its ID3v1
tag, so the merged file still carries the outer metadata.
"""
from __future__ import annotations

from typing import List, Sequence

from speechmix.audio.types import AudioClip, is_silence
from speechmix.core.logging import debug, get_logger

_LOG = get_logger("speechmix.mp3")

ID3V2_HEADER_SIZE = 10
ID3V1_TAG_SIZE = 128


def synchsafe_to_int(b6: int, b7: int, b8: int, b9: int) -> int:
    """Decode a 4-byte synchsafe integer (7 significant bits per byte)."""
    return ((b6 & 0x7F) << 21) | ((b7 & 0x7F) << 14) | ((b8 & 0x7F) << 7) | (b9 & 0x7F)


def id3v2_skip(data: bytes) -> int:
    """
    Number of leading bytes taken by an ID3v2 tag.

    Returns:
        10 + tag size when `data` starts with "ID3", else 0.
    """
    if len(data) > ID3V2_HEADER_SIZE and data[:3] == b"ID3":
        return ID3V2_HEADER_SIZE + synchsafe_to_int(data[6], data[7], data[8], data[9])
    return 0


def has_id3v1(data: bytes) -> bool:
    """True when the last 128 bytes are an ID3v1 "TAG" block."""
    return len(data) > ID3V1_TAG_SIZE and data[-ID3V1_TAG_SIZE:-ID3V1_TAG_SIZE + 3] == b"TAG"


def merge_mp3(clips: Sequence[AudioClip]) -> bytes:
    """
    Splice MP3 clips into one frame stream.

    For every clip that is not engine-made silence:
        - clip i > 0 loses its leading ID3v2 tag
        - clip i < last loses its trailing ID3v1 tag
    Silence clips are bare frames and pass through untouched. Empty
    clips are dropped.

    Args:
        clips: MP3 clips in playback order.

    Returns:
        The joined byte stream (MIME audio/mpeg).
    """
    parts: List[bytes] = []
    last = len(clips) - 1

    for index, clip in enumerate(clips):
        data = clip.data
        if not data:
            continue
        if is_silence(clip):
            parts.append(data)
            continue

        start = id3v2_skip(data) if index > 0 else 0
        end = len(data)
        if index < last and has_id3v1(data):
            end -= ID3V1_TAG_SIZE

        if start or end != len(data):
            debug(_LOG, "mp3_tags_stripped", index=index, head=start, tail=len(data) - end)
        parts.append(data[start:end])

    return b"".join(parts)
