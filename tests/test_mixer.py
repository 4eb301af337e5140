"""
Tests for the decode-mix-normalize pipeline.

All decoding goes through FakeDecoder, so clips are just keys into a
table of known PCM buffers.
"""
from __future__ import annotations

import asyncio

import numpy as np
import pytest

from conftest import FakeDecoder, constant_pcm
from speechmix.audio.mixer import (
    compute_offsets,
    decode_clips,
    mix_buffers,
    mix_clips,
    normalize_peak,
)
from speechmix.audio.silence import create_silence
from speechmix.audio.types import ContainerFormat, EncodedClip, PcmBuffer
from speechmix.audio.wav import extract_payload, parse_wav
from speechmix.core.errors import (
    DecodeError,
    NoInputError,
    OutputTooLargeError,
    SampleRateMismatchError,
)

SR = 44100


def _clip(key: bytes, fmt: ContainerFormat = ContainerFormat.MP3) -> EncodedClip:
    return EncodedClip(key, fmt, label=key.decode())


def _samples(data: bytes) -> np.ndarray:
    """Decode the 16-bit output back to floats, shaped (channels, frames)."""
    info = parse_wav(data)
    pcm = np.frombuffer(extract_payload(data), dtype="<i2").astype(np.float32)
    return pcm.reshape(-1, info.channels).T / 32767.0


class TestComputeOffsets:
    """Timeline placement."""

    def test_back_to_back(self):
        assert compute_offsets([100, 200, 50], [0.0, 0.0], SR) == [0, 100, 300]

    def test_gap_and_overlap(self):
        assert compute_offsets([SR, SR, SR], [0.5, -0.5], SR) == [0, 66150, 88200]

    def test_overlap_before_start_shifts_everything(self):
        # Clip 1 starts 50 frames before clip 0
        assert compute_offsets([100, 100], [-150 / SR], SR) == [50, 0]

    def test_empty(self):
        assert compute_offsets([], [], SR) == []


class TestMixBuffers:
    """Additive mixing."""

    def test_overlap_adds(self):
        a = PcmBuffer(SR, np.ones(4, dtype=np.float32) * 0.25)
        b = PcmBuffer(SR, np.ones(4, dtype=np.float32) * 0.5)
        out = mix_buffers([a, b], [0, 2], channels=1, total_frames=6)

        assert out.tolist() == [[0.25, 0.25, 0.75, 0.75, 0.5, 0.5]]

    def test_mono_fills_every_channel(self):
        mono = PcmBuffer(SR, np.array([0.1, 0.2], dtype=np.float32))
        out = mix_buffers([mono], [0], channels=2, total_frames=2)

        np.testing.assert_allclose(out[0], out[1])

    def test_wider_source_uses_last_channel(self):
        stereo = PcmBuffer(SR, np.array([[0.1], [0.2]], dtype=np.float32))
        out = mix_buffers([stereo], [0], channels=3, total_frames=1)

        np.testing.assert_allclose(out[:, 0], [0.1, 0.2, 0.2])


class TestNormalizePeak:
    """Global peak normalization."""

    def test_within_range_untouched(self):
        samples = np.array([[0.5, -1.0, 0.25]], dtype=np.float32)
        out, gain = normalize_peak(samples)

        assert gain == 1.0
        assert out is samples

    def test_peak_two_halves(self):
        samples = np.array([[2.0, -1.0], [0.5, 1.0]], dtype=np.float32)
        out, gain = normalize_peak(samples)

        assert gain == 0.5
        assert float(np.max(np.abs(out))) == 1.0
        np.testing.assert_allclose(out, [[1.0, -0.5], [0.25, 0.5]])

    def test_negative_peak_counts(self):
        _, gain = normalize_peak(np.array([[-4.0, 1.0]], dtype=np.float32))
        assert gain == 0.25


class TestDecodeClips:
    """Concurrent decode with deterministic failure reporting."""

    def test_silence_not_decoded(self):
        decoder = FakeDecoder({b"A": constant_pcm(0.1, 0.01)})
        silence = create_silence(0.1, ContainerFormat.MP3)

        result = asyncio.run(decode_clips([_clip(b"A"), silence], decoder))

        assert result[1] is None
        assert [call[0] for call in decoder.calls] == [b"A"]

    def test_mime_hint_passed(self):
        decoder = FakeDecoder({b"A": constant_pcm(0.1, 0.01)})
        clip = EncodedClip(b"A", ContainerFormat.OPAQUE, mime_type="audio/flac")

        asyncio.run(decode_clips([clip], decoder))
        assert decoder.calls == [(b"A", "audio/flac")]

    def test_lowest_failing_index_reported(self):
        decoder = FakeDecoder({b"A": constant_pcm(0.1, 0.01)})
        clips = [_clip(b"A"), _clip(b"bad1"), _clip(b"bad2")]

        with pytest.raises(DecodeError) as exc_info:
            asyncio.run(decode_clips(clips, decoder))

        assert exc_info.value.clip_index == 1
        assert exc_info.value.details["clip_index"] == 1
        # Every clip was attempted before the failure surfaced
        assert len(decoder.calls) == 3


class TestMixClips:
    """End-to-end pipeline."""

    def test_gap_and_overlap_scenario(self):
        """A, B, C of 1 s each with gaps [0.5, -0.5] make 3 s of audio."""
        decoder = FakeDecoder({
            b"A": constant_pcm(0.2, 1.0),
            b"B": constant_pcm(0.4, 1.0),
            b"C": constant_pcm(0.3, 1.0),
        })
        clips = [_clip(b"A"), _clip(b"B"), _clip(b"C")]

        result = asyncio.run(mix_clips(clips, [0.5, -0.5], decoder))

        assert result.mime_type == "audio/wav"
        assert result.path == "mix"
        assert result.gain == 1.0
        assert result.meta["frames"] == 132300

        out = _samples(result.data)[0]
        assert out.shape == (132300,)
        assert out[SR - 1] == pytest.approx(0.2, abs=1e-3)
        assert out[SR + 100] == 0.0
        # B alone, then B's tail over C's head, then C alone
        assert out[70000] == pytest.approx(0.4, abs=1e-3)
        assert out[100000] == pytest.approx(0.7, abs=1e-3)
        assert out[120000] == pytest.approx(0.3, abs=1e-3)

    def test_overlap_clips_get_normalized(self):
        decoder = FakeDecoder({
            b"A": constant_pcm(1.0, 0.1),
            b"B": constant_pcm(1.0, 0.1),
        })
        result = asyncio.run(mix_clips([_clip(b"A"), _clip(b"B")], [-0.05], decoder))

        assert result.gain == pytest.approx(0.5)
        assert result.meta["peak"] == pytest.approx(2.0)
        out = _samples(result.data)
        assert float(np.max(np.abs(out))) == pytest.approx(1.0, abs=1e-4)

    def test_output_is_widest_channel_count(self):
        decoder = FakeDecoder({
            b"M": constant_pcm(0.1, 0.1),
            b"S": constant_pcm(0.1, 0.1, channels=2),
        })
        result = asyncio.run(mix_clips([_clip(b"M"), _clip(b"S")], [0.0], decoder))

        assert parse_wav(result.data).channels == 2

    def test_silence_rendered_at_timeline_rate(self):
        decoder = FakeDecoder({b"A": constant_pcm(0.1, 0.5, sample_rate=24000)})
        silence = create_silence(0.5, ContainerFormat.WAV)  # 44.1 kHz bytes

        result = asyncio.run(mix_clips([_clip(b"A"), silence, _clip(b"A")], [0.0, 0.0], decoder))

        assert result.meta["sample_rate"] == 24000
        assert result.meta["frames"] == 36000

    def test_leading_silence_takes_decoded_rate(self):
        """A silence clip in front does not pin the timeline to 44.1 kHz."""
        decoder = FakeDecoder({b"A": constant_pcm(0.1, 0.5, sample_rate=24000)})
        silence = create_silence(0.3, ContainerFormat.WAV)

        result = asyncio.run(mix_clips([silence, _clip(b"A")], [0.2], decoder))

        assert result.meta["sample_rate"] == 24000
        assert result.meta["frames"] == round(0.3 * 24000) + round(0.2 * 24000) + 12000
        assert parse_wav(result.data).sample_rate == 24000

    def test_all_silence_uses_silence_rate(self):
        decoder = FakeDecoder({})
        clips = [create_silence(0.1, ContainerFormat.WAV, sample_rate=16000)] * 2

        result = asyncio.run(mix_clips(clips, [0.1], decoder))

        assert result.meta["sample_rate"] == 16000
        assert result.meta["frames"] == 4800
        assert decoder.calls == []

    def test_sample_rate_mismatch_rejected(self):
        decoder = FakeDecoder({
            b"A": constant_pcm(0.1, 0.1, sample_rate=24000),
            b"B": constant_pcm(0.1, 0.1, sample_rate=22050),
        })
        with pytest.raises(SampleRateMismatchError) as exc_info:
            asyncio.run(mix_clips([_clip(b"A"), _clip(b"B")], [0.0], decoder))

        assert exc_info.value.details["mismatched"] == {1: 22050}

    def test_sample_rate_mismatch_tolerated(self):
        decoder = FakeDecoder({
            b"A": constant_pcm(0.1, 0.1, sample_rate=24000),
            b"B": constant_pcm(0.1, 0.1, sample_rate=22050),
        })
        result = asyncio.run(mix_clips(
            [_clip(b"A"), _clip(b"B")], [0.0], decoder, strict_sample_rate=False,
        ))

        # Clip 1 is placed as if it were 24 kHz
        assert result.meta["sample_rate"] == 24000
        assert result.meta["frames"] == 2400 + 2205

    def test_output_ceiling(self):
        decoder = FakeDecoder({b"A": constant_pcm(0.1, 1.0)})
        with pytest.raises(OutputTooLargeError):
            asyncio.run(mix_clips([_clip(b"A"), _clip(b"A")], [10.0], decoder, max_output_seconds=5.0))

    def test_empty_timeline(self):
        decoder = FakeDecoder({b"Z": PcmBuffer(SR, np.zeros((1, 0), dtype=np.float32))})
        with pytest.raises(NoInputError):
            asyncio.run(mix_clips([_clip(b"Z")], None, decoder))

    def test_empty_list_decodes_nothing(self):
        decoder = FakeDecoder({})
        with pytest.raises(NoInputError):
            asyncio.run(mix_clips([], None, decoder))
        assert decoder.calls == []
