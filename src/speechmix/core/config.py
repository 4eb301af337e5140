"""
Configuration Management for speechmix.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration objects
    - YAML file loading with environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (SPEECHMIX_DECODER, SPEECHMIX_STRICT_SAMPLE_RATE)
    2. YAML config file (config/settings.yaml)
    3. Defaults class values

Example settings.yaml:
    silence:
      sample_rate: 44100
      channels: 1
      bit_depth: 16

    composition:
      strict_sample_rate: true
      allow_opaque_concat: false
      max_output_seconds: 3600

    decoder:
      backend: soundfile
      max_concurrent: 4

    logging:
      level: 2  # NORMAL
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import os
import yaml


class ConfigValidationError(Exception):
    """
    Raised when configuration validation fails.

    Thrown when a configuration value is outside acceptable bounds
    or names something that does not exist (e.g. a decoder backend).
    """
    pass


class Defaults:
    """
    Centralized default configuration values.

    Sections:
        - Silence: Format of synthesized WAV silence
        - MP3: Fixed silent frame timing
        - Composition: Dispatcher and pipeline behaviour
        - Decoder: Decode backend and fan-out
        - Logging: Log level
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Silence Synthesis
    # ─────────────────────────────────────────────────────────────────────────
    SILENCE_SAMPLE_RATE = 44100         # Hz
    SILENCE_CHANNELS = 1                # Mono
    SILENCE_BIT_DEPTH = 16              # PCM 16-bit

    # ─────────────────────────────────────────────────────────────────────────
    # MP3 Silent Frame (MPEG-1 Layer III, 44.1 kHz)
    # ─────────────────────────────────────────────────────────────────────────
    MP3_FRAME_SAMPLES = 1152            # Samples per Layer III frame
    MP3_FRAME_SAMPLE_RATE = 44100       # Rate the silent frame is encoded at

    # ─────────────────────────────────────────────────────────────────────────
    # Composition
    # ─────────────────────────────────────────────────────────────────────────
    COMPOSITION_STRICT_SAMPLE_RATE = True    # Reject clips at a different rate
    COMPOSITION_ALLOW_OPAQUE_CONCAT = False  # Byte-join unknown formats
    COMPOSITION_MAX_OUTPUT_SECONDS = 3600.0  # Mixed output ceiling (1 hour)

    # ─────────────────────────────────────────────────────────────────────────
    # Decoder
    # ─────────────────────────────────────────────────────────────────────────
    DECODER_BACKEND = "soundfile"       # libsndfile through python-soundfile
    DECODER_MAX_CONCURRENT = 4          # Clips decoded at once

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_LEVEL = 2                   # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG


@dataclass
class SilenceConfig:
    """
    Format of synthesized WAV silence.

    The concatenator overrides these with the first non-silence WAV clip's
    format so inserted silence matches the header it ends up under.
    """
    sample_rate: int = Defaults.SILENCE_SAMPLE_RATE
    channels: int = Defaults.SILENCE_CHANNELS
    bit_depth: int = Defaults.SILENCE_BIT_DEPTH


@dataclass
class CompositionConfig:
    """
    Dispatcher and mixing pipeline behaviour.

    strict_sample_rate=False restores the permissive behaviour where
    clips at a different rate are mixed as if they matched clip 0.
    max_output_seconds=None disables the output size ceiling.
    """
    strict_sample_rate: bool = Defaults.COMPOSITION_STRICT_SAMPLE_RATE
    allow_opaque_concat: bool = Defaults.COMPOSITION_ALLOW_OPAQUE_CONCAT
    max_output_seconds: Optional[float] = Defaults.COMPOSITION_MAX_OUTPUT_SECONDS


@dataclass
class DecoderConfig:
    """Decode capability selection."""
    backend: str = Defaults.DECODER_BACKEND
    max_concurrent: int = Defaults.DECODER_MAX_CONCURRENT


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL, 2 = NORMAL (default), 3 = VERBOSE, 4 = DEBUG
    """
    level: int = Defaults.LOGGING_LEVEL


@dataclass
class ComposerConfig:
    """
    Validated configuration for ComposeService.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = ComposerConfig.from_settings(settings)
        print(config.decoder.max_concurrent)
    """
    silence: SilenceConfig = field(default_factory=SilenceConfig)
    composition: CompositionConfig = field(default_factory=CompositionConfig)
    decoder: DecoderConfig = field(default_factory=DecoderConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ComposerConfig":
        """
        Create ComposerConfig from Settings with validation.

        Args:
            settings: Raw Settings object loaded from YAML.

        Returns:
            Validated ComposerConfig instance.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Silence
        # ─────────────────────────────────────────────────────────────────────
        silence_raw = raw.get("silence", {}) or {}
        silence = SilenceConfig(
            sample_rate=int(silence_raw.get("sample_rate", Defaults.SILENCE_SAMPLE_RATE)),
            channels=int(silence_raw.get("channels", Defaults.SILENCE_CHANNELS)),
            bit_depth=int(silence_raw.get("bit_depth", Defaults.SILENCE_BIT_DEPTH)),
        )
        cls._validate_positive("silence.sample_rate", silence.sample_rate)
        cls._validate_positive("silence.channels", silence.channels)
        if silence.bit_depth not in (8, 16, 24, 32):
            raise ConfigValidationError(
                f"silence.bit_depth must be one of 8, 16, 24, 32, got {silence.bit_depth}"
            )

        # ─────────────────────────────────────────────────────────────────────
        # Composition (with environment variable override)
        # ─────────────────────────────────────────────────────────────────────
        composition_raw = raw.get("composition", {}) or {}
        strict_env = os.getenv("SPEECHMIX_STRICT_SAMPLE_RATE")
        max_seconds_raw = composition_raw.get("max_output_seconds", Defaults.COMPOSITION_MAX_OUTPUT_SECONDS)
        composition = CompositionConfig(
            strict_sample_rate=strict_env != "0" if strict_env is not None
                else bool(composition_raw.get("strict_sample_rate", Defaults.COMPOSITION_STRICT_SAMPLE_RATE)),
            allow_opaque_concat=bool(composition_raw.get("allow_opaque_concat", Defaults.COMPOSITION_ALLOW_OPAQUE_CONCAT)),
            max_output_seconds=None if max_seconds_raw is None else float(max_seconds_raw),
        )
        if composition.max_output_seconds is not None:
            cls._validate_positive("composition.max_output_seconds", composition.max_output_seconds)

        # ─────────────────────────────────────────────────────────────────────
        # Decoder
        # ─────────────────────────────────────────────────────────────────────
        decoder_raw = raw.get("decoder", {}) or {}
        decoder = DecoderConfig(
            backend=str(decoder_raw.get("backend", Defaults.DECODER_BACKEND)).lower(),
            max_concurrent=int(decoder_raw.get("max_concurrent", Defaults.DECODER_MAX_CONCURRENT)),
        )
        cls._validate_positive("decoder.max_concurrent", decoder.max_concurrent)

        # ─────────────────────────────────────────────────────────────────────
        # Logging
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)

        if isinstance(log_level_raw, str):
            level_map = {
                "MINIMAL": 1, "1": 1,
                "NORMAL": 2, "INFO": 2, "2": 2,
                "VERBOSE": 3, "3": 3,
                "DEBUG": 4, "TRACE": 4, "4": 4,
            }
            log_level = level_map.get(log_level_raw.upper(), Defaults.LOGGING_LEVEL)
        else:
            log_level = int(log_level_raw)

        logging_cfg = LoggingConfig(level=log_level)
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        return cls(
            silence=silence,
            composition=composition,
            decoder=decoder,
            logging=logging_cfg,
        )

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML.

    This is the raw settings object before validation. Use
    get_composer_config() to get a validated ComposerConfig.

    Attributes:
        raw: Dictionary of raw configuration values.
    """
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def decoder_backend(self) -> str:
        """Name of the decode backend (currently only "soundfile")."""
        return str((self.raw.get("decoder", {}) or {}).get("backend", Defaults.DECODER_BACKEND)).lower()

    def get_composer_config(self) -> ComposerConfig:
        """
        Get validated ComposerConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return ComposerConfig.from_settings(self)


def load_settings(path: str = "config/settings.yaml") -> Settings:
    """
    Load settings from a YAML configuration file.

    Environment variable overrides:
        - SPEECHMIX_DECODER: Override decoder.backend

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Settings object with loaded configuration.

    Raises:
        FileNotFoundError: If the settings file doesn't exist.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    with p.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    backend = os.getenv("SPEECHMIX_DECODER")
    if backend:
        raw.setdefault("decoder", {})["backend"] = backend

    return Settings(raw=raw)
