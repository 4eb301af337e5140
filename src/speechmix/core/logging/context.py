"""
Request Context and Configuration State for Logging.

The request id lives in a ContextVar so that concurrent compositions
running on one event loop keep their own correlation id. Everything
else (current level, resolved config, configured flag) is module state
shared by the whole process.

Environment Variables:
    - SPEECHMIX_LOG_LEVEL: Override log level (1-4 or name)
    - SPEECHMIX_LOG_DIR: Directory for the JSONL log file
    - SPEECHMIX_JSONL_FILE: JSONL filename
    - SPEECHMIX_LOG_ROTATE_BYTES: Max log file size
    - SPEECHMIX_LOG_ROTATE_BACKUP: Number of backup files
    - SPEECHMIX_SETTINGS: Settings YAML path (default config/settings.yaml)
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

import yaml

from .levels import LEVEL_NAMES, LogLevel

_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    """Return the request id of the current context, or "-"."""
    return _request_id.get()


def set_request_id(rid: str) -> None:
    """
    Set request ID in context for log correlation.

    Args:
        rid: Request identifier string (typically an 8-12 char UUID prefix).
    """
    _request_id.set(rid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def get_level_name() -> str:
    """Current level as "MINIMAL", "NORMAL", "VERBOSE" or "DEBUG"."""
    return LEVEL_NAMES.get(_current_level, "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def read_logging_config() -> Dict[str, Any]:
    """
    Read logging configuration from the settings file and environment.

    Priority (highest first):
        1. SPEECHMIX_LOG_* environment variables
        2. `logging` section of the settings YAML
        3. Defaults (applied by configure_logging)

    Returns:
        Dictionary with resolved logging configuration.
    """
    cfg: Dict[str, Any] = {}

    settings_path = os.getenv("SPEECHMIX_SETTINGS", "config/settings.yaml")
    try:
        from speechmix.core.config import load_settings
        settings = load_settings(settings_path)
        cfg.update(settings.raw.get("logging", {}) or {})
    except (OSError, yaml.YAMLError):
        # No settings file (the usual case for library use) or unreadable YAML
        pass

    if os.getenv("SPEECHMIX_LOG_LEVEL"):
        cfg["level"] = os.environ["SPEECHMIX_LOG_LEVEL"]
    if os.getenv("SPEECHMIX_LOG_DIR"):
        cfg["log_dir"] = os.environ["SPEECHMIX_LOG_DIR"]
    if os.getenv("SPEECHMIX_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["SPEECHMIX_JSONL_FILE"]
    if os.getenv("SPEECHMIX_LOG_ROTATE_BYTES"):
        try:
            cfg["rotate_max_bytes"] = int(os.environ["SPEECHMIX_LOG_ROTATE_BYTES"])
        except ValueError:
            pass
    if os.getenv("SPEECHMIX_LOG_ROTATE_BACKUP"):
        try:
            cfg["rotate_backup_count"] = int(os.environ["SPEECHMIX_LOG_ROTATE_BACKUP"])
        except ValueError:
            pass

    return cfg
