"""
Audio Composition Components.

    - types.py: Clip, PCM buffer and result types
    - wav.py: RIFF/WAVE parsing, header building, payload merging
    - mp3.py: ID3-aware MP3 frame stream splicing
    - silence.py: WAV/MP3 silence synthesis
    - concat.py: Byte-level concatenation (fast path)
    - decoder.py: Decode capability and the soundfile backend
    - mixer.py: Decode-mix-normalize pipeline (accurate path)
    - ingest.py: TTS response to clip helpers
"""
from .types import (
    AudioClip,
    CompositionResult,
    ContainerFormat,
    EncodedClip,
    PcmBuffer,
    SilenceClip,
    is_silence,
)

__all__ = [
    "AudioClip",
    "CompositionResult",
    "ContainerFormat",
    "EncodedClip",
    "PcmBuffer",
    "SilenceClip",
    "is_silence",
]
