"""
Log Formatters for JSON and Console Output.

    JsonlFormatter: one JSON object per line, for the rotating log file.
    ColoredConsoleFormatter: human-readable line for the terminal.

Output Examples:
    JSONL (file):
        {"ts":"2026-03-02T10:12:44+01:00","level":2,"tag":"SUCCESS","message":"composed","request_id":"3f9c2a1b","seconds":0.041,"extra":{"path":"mix","bytes":264644}}

    Console:
        10:12:44 [SUCCESS] (3f9c2a1b) composed 0.041s path=mix bytes=264644

Field coloring:
    - seconds: green < 0.1s < yellow < 1.0s < red
    - peak: red when above full scale (the mix was normalized)
    - gain: yellow when attenuation was applied
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict

from .colors import Colors, get_tag_color


def _get_use_colors() -> bool:
    # Read through the package so tests can flip the flag at runtime
    import speechmix.core.logging as log_module
    return getattr(log_module, "_USE_COLORS", False)


def _colorize_for_formatter(text: str, color: str) -> str:
    if not _get_use_colors():
        return text
    return f"{color}{text}{Colors.RESET}"


class JsonlFormatter(logging.Formatter):
    """
    Format log records as JSON Lines for file output.

    Keys: ts, level, tag, message, request_id and, when present,
    event, seconds and extra.
    """

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).astimezone().isoformat()

        payload: Dict[str, Any] = {
            "ts": ts,
            "level": getattr(record, "numeric_level", 2),
            "tag": getattr(record, "tag", record.levelname),
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }

        event = getattr(record, "event", None)
        if event:
            payload["event"] = event

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            payload["seconds"] = seconds

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            payload["extra"] = extra_data

        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """
    Format log records with ANSI colors for console output.

    Output Format:
        HH:MM:SS [ TAG   ] (rid) message 0.123s key=value
    """

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tag = getattr(record, "tag", record.levelname)
        rid = getattr(record, "request_id", "-")
        msg = record.getMessage()

        ts_str = _colorize_for_formatter(ts, Colors.DIM)
        tag_str = _colorize_for_formatter(f"[{tag:^7}]", get_tag_color(tag))
        rid_str = _colorize_for_formatter(f"({rid})", Colors.DIM + Colors.CYAN) if rid != "-" else ""

        parts = [ts_str, tag_str]
        if rid_str:
            parts.append(rid_str)
        parts.append(msg)

        event = getattr(record, "event", None)
        if event:
            parts.append(_colorize_for_formatter(f"event={event}", Colors.BLUE))

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            if seconds < 0.1:
                time_color = Colors.GREEN
            elif seconds < 1.0:
                time_color = Colors.YELLOW
            else:
                time_color = Colors.RED
            parts.append(_colorize_for_formatter(f"{seconds:.3f}s", time_color))

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            for k, v in extra_data.items():
                parts.append(_colorize_for_formatter(f"{k}={v}", self._get_field_color(k, v)))

        return " ".join(parts)

    def _get_field_color(self, key: str, value: Any) -> str:
        """
        Pick a color for an extra field.

        Highlights the values worth noticing while composing:
            - peak above 1.0 means the mix clipped before normalization
            - gain below 1.0 means attenuation was applied
            - path tells which composition path ran
        """
        if key == "peak" and isinstance(value, (int, float)):
            return Colors.RED if value > 1.0 else Colors.GREEN

        if key == "gain" and isinstance(value, (int, float)):
            return Colors.YELLOW if value < 1.0 else Colors.GREEN

        if key == "path":
            return Colors.MAGENTA if value == "mix" else Colors.CYAN

        return Colors.DIM
