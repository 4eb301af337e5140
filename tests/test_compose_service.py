"""
Tests for ComposeService path selection and error propagation.

Uses FakeDecoder so nothing touches libsndfile.
"""
from __future__ import annotations

import asyncio

import pytest

from conftest import FakeDecoder, build_wav, constant_pcm
from speechmix.audio.silence import create_silence
from speechmix.audio.types import ContainerFormat, EncodedClip
from speechmix.audio.wav import parse_wav
from speechmix.core.config import ConfigValidationError, Settings
from speechmix.core.errors import (
    DecodeError,
    InvalidInputError,
    NoInputError,
)
from speechmix.services import PATH_CONCAT, PATH_MIX, ComposeService, compose

WAV = ContainerFormat.WAV
MP3 = ContainerFormat.MP3
OPAQUE = ContainerFormat.OPAQUE


def _service(table=None, **raw) -> ComposeService:
    return ComposeService(Settings(raw=raw), decoder=FakeDecoder(table or {}))


class TestChoosePath:
    """Routing between the byte-level and PCM paths."""

    def test_same_format_zero_gaps_concat(self):
        clips = [EncodedClip(b"a", MP3), EncodedClip(b"b", MP3)]
        assert _service().choose_path(clips, [0.0]) == PATH_CONCAT

    def test_any_gap_mixes(self):
        clips = [EncodedClip(b"a", WAV), EncodedClip(b"b", WAV)]
        assert _service().choose_path(clips, [0.3]) == PATH_MIX
        assert _service().choose_path(clips, [-0.3]) == PATH_MIX

    def test_mixed_formats_mix(self):
        clips = [EncodedClip(b"a", WAV), EncodedClip(b"b", MP3)]
        assert _service().choose_path(clips, [0.0]) == PATH_MIX

    def test_single_opaque_concat(self):
        assert _service().choose_path([EncodedClip(b"a", OPAQUE)], []) == PATH_CONCAT

    def test_several_opaque_mix(self):
        clips = [EncodedClip(b"a", OPAQUE), EncodedClip(b"b", OPAQUE)]
        assert _service().choose_path(clips, [0.0]) == PATH_MIX

    def test_several_opaque_concat_when_allowed(self):
        clips = [EncodedClip(b"a", OPAQUE), EncodedClip(b"b", OPAQUE)]
        service = _service(composition={"allow_opaque_concat": True})
        assert service.choose_path(clips, [0.0]) == PATH_CONCAT


class TestCompose:
    """End-to-end through the service."""

    def test_wav_concat_keeps_container(self):
        clips = [EncodedClip(build_wav(bytes(10)), WAV), EncodedClip(build_wav(bytes(6)), WAV)]
        result = asyncio.run(_service().compose(clips))

        assert result.path == PATH_CONCAT
        assert result.mime_type == "audio/wav"
        assert parse_wav(result.data).data_length == 16

    def test_mp3_gap_is_mixed_to_wav(self):
        table = {b"A": constant_pcm(0.1, 0.5), b"B": constant_pcm(0.1, 0.5)}
        clips = [EncodedClip(b"A", MP3), EncodedClip(b"B", MP3)]

        result = asyncio.run(_service(table).compose(clips, [0.25]))

        assert result.path == PATH_MIX
        assert result.mime_type == "audio/wav"
        assert result.meta["frames"] == round(1.25 * 44100)

    def test_leading_silence_then_24khz_clip(self):
        table = {b"A": constant_pcm(0.1, 0.5, sample_rate=24000)}
        clips = [create_silence(0.3, WAV), EncodedClip(b"A", WAV)]

        result = asyncio.run(_service(table).compose(clips, [0.2]))

        assert result.path == PATH_MIX
        assert result.meta["sample_rate"] == 24000
        assert result.meta["frames"] == 7200 + 4800 + 12000

    def test_silence_clip_in_mp3_concat(self):
        frames = b"\xff\xfb" + bytes(50)
        clips = [EncodedClip(frames, MP3), create_silence(0.1, MP3), EncodedClip(frames, MP3)]

        result = asyncio.run(_service().compose(clips, [0.0, 0.0]))

        assert result.path == PATH_CONCAT
        assert result.data == frames + clips[1].data + frames

    def test_several_opaque_decode_failure_has_clip_index(self):
        """Several opaque clips go through decode, which names the failing clip."""
        clips = [EncodedClip(b"x", OPAQUE), EncodedClip(b"y", OPAQUE)]
        with pytest.raises(DecodeError) as exc_info:
            asyncio.run(_service().compose(clips))
        assert exc_info.value.clip_index == 0

    def test_wrong_gap_count(self):
        clips = [EncodedClip(b"a", MP3), EncodedClip(b"b", MP3)]
        with pytest.raises(InvalidInputError):
            asyncio.run(_service().compose(clips, [0.0, 0.0]))


class TestEmptyInput:
    """An empty clip list fails before anything else happens."""

    def test_no_input_error_and_no_decode(self):
        decoder = FakeDecoder({})
        service = ComposeService(Settings(), decoder=decoder)

        with pytest.raises(NoInputError):
            asyncio.run(service.compose([], []))

        assert decoder.calls == []

    def test_module_level_compose(self):
        decoder = FakeDecoder({})
        with pytest.raises(NoInputError):
            asyncio.run(compose([], None, decoder))
        assert decoder.calls == []


class TestServiceConstruction:
    """Settings are validated up front."""

    def test_invalid_settings(self):
        with pytest.raises(ConfigValidationError):
            ComposeService(Settings(raw={"decoder": {"max_concurrent": 0}}), decoder=FakeDecoder({}))

    def test_unknown_backend(self):
        with pytest.raises(ConfigValidationError, match="unknown decoder backend"):
            ComposeService(Settings(raw={"decoder": {"backend": "nope"}}))

    def test_default_decoder(self):
        assert ComposeService().decoder.name == "soundfile"

    def test_allow_opaque_concat_with_gaps_still_mixes(self):
        clips = [EncodedClip(b"a", OPAQUE), EncodedClip(b"b", OPAQUE)]
        service = _service(composition={"allow_opaque_concat": True})
        assert service.choose_path(clips, [0.5]) == PATH_MIX

    def test_opaque_concat_allowed_joins_bytes(self):
        clips = [EncodedClip(b"OggS1", OPAQUE), EncodedClip(b"OggS2", OPAQUE)]
        service = _service(composition={"allow_opaque_concat": True})

        result = asyncio.run(service.compose(clips))
        assert result.data == b"OggS1OggS2"
