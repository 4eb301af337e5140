"""
speechmix Structured Logging Module.

Unified logging for the composition engine with:
    - Numeric log levels (1-4) for simplified configuration
    - Colored console output for human readability
    - JSONL file output for machine parsing
    - Request ID correlation across one composition call

Log Levels:
    1 = MINIMAL  - Failures and final results only
    2 = NORMAL   - Composition lifecycle (default)
    3 = VERBOSE  - Routing decisions, per-clip decode timing
    4 = DEBUG    - Chunk scans, offsets, internal state

Configuration:
    export SPEECHMIX_LOG_LEVEL=3   # VERBOSE
    export SPEECHMIX_NO_COLOR=1    # Disable colors

    In settings.yaml:
        logging:
          level: 2
          log_dir: logs
          jsonl_file: speechmix.jsonl

Usage:
    from speechmix.core.logging import get_logger, info, warn, error

    log = get_logger("speechmix.mymodule")

    info(log, "compose_started", clips=3, gaps=2)
    warn(log, "wav_clip_skipped", index=2, bytes=12)
    verbose(log, "clip_decoded", index=1, frames=44100, seconds=0.004)

Module Structure:
    - levels.py: LogLevel enum and level mapping
    - colors.py: ANSI color codes and terminal detection
    - context.py: Request ID and configuration state
    - formatters.py: JsonlFormatter and ColoredConsoleFormatter
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from .levels import LogLevel, LEVEL_MAP, LEVEL_NAMES, coerce_level
from .colors import Colors, supports_color, colorize, get_tag_color
from .context import (
    get_request_id,
    set_request_id,
    get_level,
    set_level,
    get_level_name,
    is_configured,
    set_configured,
    get_log_config,
    set_log_config,
    read_logging_config,
)
from .formatters import JsonlFormatter, ColoredConsoleFormatter


_PACKAGE_LOGGER = "speechmix"
_DEFAULT_JSONL = "speechmix.jsonl"
_DEFAULT_ROTATE_BYTES = 10 * 1024 * 1024
_DEFAULT_ROTATE_BACKUPS = 5


def _console_handler(threshold: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(threshold)
    handler.setFormatter(ColoredConsoleFormatter())
    return handler


def _jsonl_handler(cfg: dict) -> Optional[logging.Handler]:
    """Rotating JSONL file under log_dir, or None when no log_dir is set."""
    log_dir = cfg.get("log_dir")
    if not log_dir:
        return None

    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        directory / str(cfg.get("jsonl_file", _DEFAULT_JSONL)),
        maxBytes=int(cfg.get("rotate_max_bytes", _DEFAULT_ROTATE_BYTES)),
        backupCount=int(cfg.get("rotate_backup_count", _DEFAULT_ROTATE_BACKUPS)),
        encoding="utf-8",
        delay=True,
    )
    # The file keeps every level; only the console is filtered
    handler.setLevel(1)
    handler.setFormatter(JsonlFormatter())
    return handler


def configure_logging(level: Optional[int | str | LogLevel] = None, force: bool = False) -> None:
    """
    Install console (and optional JSONL file) handlers.

    Only the "speechmix" logger tree is touched, so embedding
    applications keep their own root handlers. Called lazily by
    get_logger(); call it again with force=True to pick up a new level
    or SPEECHMIX_LOG_* environment.

    Args:
        level: 1-4, a level name, or a LogLevel. Falls back to the
            settings file / SPEECHMIX_LOG_LEVEL, then NORMAL.
        force: Rebuild handlers even if logging is already configured.
    """
    global _USE_COLORS

    if is_configured() and not force:
        return

    _USE_COLORS = supports_color()

    cfg = read_logging_config()
    set_log_config(cfg)

    numeric = coerce_level(level or cfg.get("level", LogLevel.NORMAL))
    set_level(numeric)

    package_logger = logging.getLogger(_PACKAGE_LOGGER)
    package_logger.setLevel(1)  # 0 is NOTSET on a non-root logger
    package_logger.propagate = False
    for old in list(package_logger.handlers):
        package_logger.removeHandler(old)
        old.close()

    package_logger.addHandler(_console_handler(LEVEL_MAP.get(numeric, logging.INFO)))
    file_handler = _jsonl_handler(cfg)
    if file_handler is not None:
        package_logger.addHandler(file_handler)

    set_configured(True)


def _log(
    logger: logging.Logger,
    level: int,
    tag: str,
    msg: str,
    numeric_level: int = 2,
    **fields: Any
) -> None:
    if numeric_level > get_level():
        return

    event = fields.pop("event", None)
    seconds = fields.pop("seconds", None)
    logger.log(
        level,
        msg,
        extra={
            "tag": tag,
            "request_id": get_request_id(),
            "event": event,
            "seconds": seconds,
            "extra_data": fields or None,
            "numeric_level": numeric_level,
        },
    )


def get_logger(name: str = _PACKAGE_LOGGER) -> logging.Logger:
    """Logger under the speechmix tree; configures logging on first use."""
    configure_logging()
    return logging.getLogger(name)


def info(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Lifecycle event, e.g. compose_started (NORMAL)."""
    _log(logger, logging.INFO, "INFO", msg, numeric_level=LogLevel.NORMAL, **fields)


def warn(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Recovered oddity, e.g. a clamped data chunk (NORMAL)."""
    _log(logger, logging.WARNING, "WARN", msg, numeric_level=LogLevel.NORMAL, **fields)


def error(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Unexpected error (MINIMAL)."""
    _log(logger, logging.ERROR, "ERROR", msg, numeric_level=LogLevel.MINIMAL, **fields)


def success(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Finished composition (NORMAL)."""
    _log(logger, logging.INFO, "SUCCESS", msg, numeric_level=LogLevel.NORMAL, **fields)


def fail(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Composition aborted with a ComposeError (MINIMAL)."""
    _log(logger, logging.ERROR, "FAIL", msg, numeric_level=LogLevel.MINIMAL, **fields)


def verbose(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Per-clip and routing detail (VERBOSE)."""
    _log(logger, logging.DEBUG, "INFO", msg, numeric_level=LogLevel.VERBOSE, **fields)


def debug(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Chunk scans, offsets, buffer shapes (DEBUG)."""
    _log(logger, logging.DEBUG - 5, "DEBUG", msg, numeric_level=LogLevel.DEBUG, **fields)


# Console formatter reads this at format time; tests flip it
_USE_COLORS = supports_color()


__all__ = [
    "LogLevel",
    "LEVEL_MAP",
    "LEVEL_NAMES",
    "coerce_level",
    "Colors",
    "supports_color",
    "colorize",
    "get_tag_color",
    "get_request_id",
    "set_request_id",
    "get_level",
    "set_level",
    "get_level_name",
    "get_log_config",
    "JsonlFormatter",
    "ColoredConsoleFormatter",
    "configure_logging",
    "get_logger",
    "info",
    "warn",
    "error",
    "success",
    "fail",
    "verbose",
    "debug",
]
