"""Tests for byte-level concatenation (fast path)."""
from __future__ import annotations

import pytest

from conftest import build_wav, id3v1_tag, id3v2_tag
from speechmix.audio.concat import concatenate, normalize_gaps
from speechmix.audio.silence import SILENT_MP3_FRAME, create_silence
from speechmix.audio.types import ContainerFormat, EncodedClip
from speechmix.audio.wav import parse_wav
from speechmix.core.config import SilenceConfig
from speechmix.core.errors import (
    FormatError,
    InvalidInputError,
    NoInputError,
    UnsupportedOperationError,
)

WAV = ContainerFormat.WAV
MP3 = ContainerFormat.MP3
OPAQUE = ContainerFormat.OPAQUE


def _wav(payload: bytes, **kwargs) -> EncodedClip:
    return EncodedClip(build_wav(payload, **kwargs), WAV)


def _mp3(data: bytes) -> EncodedClip:
    return EncodedClip(data, MP3)


class TestNormalizeGaps:
    """Tests for normalize_gaps()."""

    def test_none_means_zeros(self):
        assert normalize_gaps(3, None) == [0.0, 0.0]
        assert normalize_gaps(1, None) == []
        assert normalize_gaps(0, None) == []

    def test_wrong_length(self):
        with pytest.raises(InvalidInputError, match="expected 2 gaps"):
            normalize_gaps(3, [0.5])

    def test_values_become_floats(self):
        assert normalize_gaps(2, [1]) == [1.0]


class TestWavConcat:
    """WAV clips share one header."""

    def test_back_to_back(self):
        result = concatenate([_wav(b"\x01\x00" * 10), _wav(b"\x02\x00" * 5)], None, WAV)

        assert result.mime_type == "audio/wav"
        assert result.path == "concat"
        info = parse_wav(result.data)
        assert info.data_length == 30

    def test_positive_gap_inserts_silence(self):
        result = concatenate([_wav(bytes(20)), _wav(bytes(20))], [0.5], WAV)

        # 0.5 s of 44.1 kHz mono 16-bit silence in between
        assert parse_wav(result.data).data_length == 40 + 22050 * 2

    def test_silence_matches_first_clip_format(self):
        """Silence takes the format the merged header will declare."""
        clips = [_wav(bytes(8), sample_rate=16000, channels=2), _wav(bytes(8), sample_rate=16000, channels=2)]
        result = concatenate(clips, [1.0], WAV, silence=SilenceConfig(sample_rate=44100))

        info = parse_wav(result.data)
        assert info.sample_rate == 16000
        assert info.data_length == 16 + 16000 * 2 * 2

    def test_leading_silence_clip_follows_speech_format(self):
        """A supplied silence clip neither sets the header nor changes length."""
        clips = [create_silence(0.25, WAV), _wav(bytes(8), sample_rate=24000)]
        result = concatenate(clips, [0.0], WAV)

        info = parse_wav(result.data)
        assert info.sample_rate == 24000
        assert info.data_length == 6000 * 2 + 8
        assert result.data[44:44 + 12000] == bytes(12000)

    def test_all_silence_uses_silence_settings(self):
        clips = [create_silence(0.5, WAV), create_silence(0.5, WAV)]
        result = concatenate(clips, [0.0], WAV, silence=SilenceConfig(sample_rate=8000))

        info = parse_wav(result.data)
        assert info.sample_rate == 8000
        assert info.data_length == 8000 * 2

    def test_no_valid_audio(self):
        with pytest.raises(NoInputError):
            concatenate([_wav(b""), EncodedClip(b"abc", WAV)], None, WAV)

    def test_single_clip(self):
        clip = _wav(bytes(40))
        result = concatenate([clip], None, WAV)
        assert result.data == clip.data


class TestMp3Concat:
    """MP3 clips are spliced after ID3 stripping."""

    def test_gap_inserts_frames(self):
        frames = b"\xff\xfb" + bytes(100)
        result = concatenate([_mp3(frames), _mp3(frames)], [0.5], MP3)

        assert result.mime_type == "audio/mpeg"
        assert result.data == frames + SILENT_MP3_FRAME * 20 + frames

    def test_tags_stripped(self):
        a = id3v2_tag(10) + b"\xff\xfb" + bytes(200) + id3v1_tag()
        b = id3v2_tag(10) + b"\xff\xfb" + bytes(200) + id3v1_tag()
        result = concatenate([_mp3(a), _mp3(b)], [0.0], MP3)

        assert len(result.data) == len(a) + len(b) - 20 - 128

    def test_all_empty(self):
        with pytest.raises(NoInputError):
            concatenate([_mp3(b""), _mp3(b"")], None, MP3)


class TestOpaqueConcat:
    """Opaque clips cannot be spliced safely."""

    def test_single_clip_passes_through(self):
        clip = EncodedClip(b"fLaC....", OPAQUE, mime_type="audio/flac")
        result = concatenate([clip], None, OPAQUE)

        assert result.data == b"fLaC...."
        assert result.mime_type == "audio/flac"

    def test_multiple_refused(self):
        clips = [EncodedClip(b"a", OPAQUE), EncodedClip(b"b", OPAQUE)]
        with pytest.raises(UnsupportedOperationError):
            concatenate(clips, None, OPAQUE)

    def test_multiple_allowed(self):
        clips = [EncodedClip(b"OggS1", OPAQUE, mime_type="audio/ogg"), EncodedClip(b"OggS2", OPAQUE)]
        result = concatenate(clips, [0.5], OPAQUE, allow_opaque=True)

        # No silence can be rendered for an unknown container
        assert result.data == b"OggS1OggS2"
        assert result.mime_type == "audio/ogg"


class TestValidation:
    """Input checks run before any bytes are touched."""

    def test_empty_list(self):
        with pytest.raises(NoInputError):
            concatenate([], None, WAV)

    def test_negative_gap(self):
        with pytest.raises(UnsupportedOperationError):
            concatenate([_wav(bytes(4)), _wav(bytes(4))], [-0.1], WAV)

    def test_format_mismatch(self):
        with pytest.raises(FormatError, match="clip 1 is mp3"):
            concatenate([_wav(bytes(4)), _mp3(b"\xff\xfb")], None, WAV)

    def test_silence_format_mismatch(self):
        silence = create_silence(0.1, MP3)
        with pytest.raises(FormatError, match="silence clip 1"):
            concatenate([_wav(bytes(4)), silence], None, WAV)
