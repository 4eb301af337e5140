"""
ComposeService - Composition Dispatcher.

Single entry point for turning an ordered list of clips plus the gaps
between them into one audio buffer.

Architecture:
    clips + gaps -> validate -> choose path -> concatenate | mix_clips -> result

Path selection:
    concat (byte-level, lossless, keeps the input container) when
        - every gap is exactly 0, and
        - every clip is in the same container, and
        - that container is WAV or MP3 (or a single clip of anything)
    mix (decode to PCM, output always WAV) otherwise. This covers
        silence gaps, overlaps, clips in different containers and
        several clips of a container the byte path cannot splice.

Error Handling:
    Every ComposeError propagates to the caller after a FAIL log line.
    No partial output is ever returned and nothing is retried here.

Example:
    >>> from speechmix.services import ComposeService
    >>> from speechmix.audio import EncodedClip, ContainerFormat
    >>>
    >>> service = ComposeService()
    >>> clips = [EncodedClip(a, ContainerFormat.WAV), EncodedClip(b, ContainerFormat.WAV)]
    >>> result = asyncio.run(service.compose(clips, [-0.25]))
    >>> result.mime_type, result.path
    ('audio/wav', 'mix')
"""
from __future__ import annotations

from typing import Optional, Sequence
from uuid import uuid4

from speechmix.audio.concat import concatenate, normalize_gaps
from speechmix.audio.decoder import BaseDecoder, get_decoder
from speechmix.audio.mixer import mix_clips
from speechmix.audio.types import AudioClip, CompositionResult, ContainerFormat
from speechmix.core.config import ComposerConfig, Settings
from speechmix.core.errors import ComposeError, NoInputError
from speechmix.core.logging import fail, get_logger, info, set_request_id, success, verbose
from speechmix.utils.timeit import timeit

_LOG = get_logger("speechmix.service")

PATH_CONCAT = "concat"
PATH_MIX = "mix"


class ComposeService:
    """
    Composition dispatcher with validated configuration and an injected decoder.

    The service holds no per-call state; one instance can serve any
    number of concurrent compose() calls.

    Usage:
        service = ComposeService(load_settings("config/settings.yaml"))
        result = await service.compose(clips, gaps, request_id="req-123")
    """

    def __init__(self, settings: Optional[Settings] = None, decoder: Optional[BaseDecoder] = None):
        """
        Args:
            settings: Application settings; defaults apply when omitted.
            decoder: Decode capability for the mix path. When omitted the
                backend named in settings is created.

        Raises:
            ConfigValidationError: Invalid settings or unknown decoder.
        """
        self._settings = settings or Settings()
        self._config = ComposerConfig.from_settings(self._settings)
        self._decoder = decoder or get_decoder(self._settings)

    @property
    def config(self) -> ComposerConfig:
        return self._config

    @property
    def decoder(self) -> BaseDecoder:
        return self._decoder

    def choose_path(self, clips: Sequence[AudioClip], gaps: Sequence[float]) -> str:
        """Return PATH_CONCAT or PATH_MIX for already validated input."""
        if any(g != 0 for g in gaps):
            return PATH_MIX

        formats = {clip.format for clip in clips}
        if len(formats) > 1:
            return PATH_MIX

        (fmt,) = formats
        if (
            fmt is ContainerFormat.OPAQUE
            and len(clips) > 1
            and not self._config.composition.allow_opaque_concat
        ):
            return PATH_MIX

        return PATH_CONCAT

    async def compose(
        self,
        clips: Sequence[AudioClip],
        gaps: Optional[Sequence[float]] = None,
        request_id: Optional[str] = None,
    ) -> CompositionResult:
        """
        Compose clips into one buffer.

        Args:
            clips: Clips in playback order.
            gaps: Seconds between clip i and i+1 (len(clips) - 1 values;
                negative = overlap), or None for back-to-back.
            request_id: Correlation id for log lines (generated if omitted).

        Returns:
            CompositionResult.

        Raises:
            NoInputError: Empty clip list or no audio.
            InvalidInputError: Wrong number of gaps.
            FormatError, DecodeError, UnsupportedOperationError,
            SampleRateMismatchError, OutputTooLargeError: see core/errors.py.
        """
        set_request_id(request_id or uuid4().hex[:8])

        if not clips:
            fail(_LOG, "compose_failed", error=NoInputError.__name__, message="empty clip list")
            raise NoInputError("empty clip list")

        with timeit("compose") as t:
            try:
                gap_list = normalize_gaps(len(clips), gaps)
                path = self.choose_path(clips, gap_list)
                info(_LOG, "compose_started", clips=len(clips), path=path)
                result = await self._run(path, clips, gap_list)
            except ComposeError as exc:
                fail(_LOG, "compose_failed", error=exc.code, message=exc.message)
                raise

        success(
            _LOG,
            "composed",
            path=result.path,
            mime=result.mime_type,
            bytes=len(result.data),
            gain=round(result.gain, 4),
            seconds=t.seconds,
        )
        return result

    async def _run(self, path: str, clips: Sequence[AudioClip], gaps: Sequence[float]) -> CompositionResult:
        composition = self._config.composition

        if path == PATH_MIX:
            return await mix_clips(
                clips,
                gaps,
                self._decoder,
                strict_sample_rate=composition.strict_sample_rate,
                max_concurrent_decodes=self._config.decoder.max_concurrent,
                max_output_seconds=composition.max_output_seconds,
            )

        target = clips[0].format
        verbose(_LOG, "fast_path", target=target.value)
        return concatenate(
            clips,
            gaps,
            target,
            allow_opaque=composition.allow_opaque_concat,
            silence=self._config.silence,
        )


async def compose(
    clips: Sequence[AudioClip],
    gaps: Optional[Sequence[float]],
    decoder: BaseDecoder,
    settings: Optional[Settings] = None,
) -> CompositionResult:
    """Compose with a one-off ComposeService (see ComposeService.compose)."""
    return await ComposeService(settings, decoder=decoder).compose(clips, gaps)
