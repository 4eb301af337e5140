"""
Command-Line Interface for speechmix.

Composes audio files on disk without writing any Python.

Usage Examples:
    # Back-to-back (byte-level join, stays MP3)
    speechmix a.mp3 b.mp3 --out joined.mp3

    # Half a second of silence, then a quarter second of overlap (mixed, WAV)
    speechmix a.wav b.wav c.wav --gaps 0.5 -0.25 --out scene.wav

    # Show which path would run without decoding anything
    speechmix a.wav b.flac --dry-run --json

    # Render silence
    speechmix --silence 1.5 --format mp3 --out pause.mp3

Environment Variables:
    SPEECHMIX_SETTINGS: Settings YAML used when --settings is not given
    SPEECHMIX_LOG_LEVEL: Log level (1-4)
    SPEECHMIX_DECODER: Decoder backend override
"""

from __future__ import annotations

import argparse
import asyncio
import json
import mimetypes
import os
from pathlib import Path
from typing import List, Optional

import yaml

from speechmix.audio.concat import normalize_gaps
from speechmix.audio.silence import create_silence
from speechmix.audio.types import AudioClip, ContainerFormat, EncodedClip
from speechmix.core.config import ConfigValidationError, Settings, load_settings
from speechmix.core.errors import ComposeError, InvalidInputError
from speechmix.core.logging import configure_logging, get_logger, info
from speechmix.services.compose_service import ComposeService

mimetypes.add_type("audio/flac", ".flac")
mimetypes.add_type("audio/ogg", ".opus")


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="speechmix CLI (compose speech clips)")

    parser.add_argument("inputs", nargs="*", help="Audio clips in playback order")
    parser.add_argument("--gaps", nargs="+", type=float, default=None,
                        help="Seconds between consecutive clips (negative = overlap)")
    parser.add_argument("--out", help="Output path (default: out.<ext>)")

    parser.add_argument("--silence", type=float, metavar="SECONDS",
                        help="Render silence instead of composing")
    parser.add_argument("--format", choices=["wav", "mp3"], default="wav",
                        help="Container for --silence")

    parser.add_argument("--settings", help="Settings YAML path")
    parser.add_argument("--log-level", help="Log level (1-4 or name)")
    parser.add_argument("--dry-run", action="store_true",
                        help="Validate and report the composition path without running it")
    parser.add_argument("--json", action="store_true",
                        help="Print JSON summary")

    return parser.parse_args(argv)


def _load_settings(path: Optional[str]) -> Settings:
    if path:
        return load_settings(path)
    env_path = os.getenv("SPEECHMIX_SETTINGS")
    if env_path and Path(env_path).exists():
        return load_settings(env_path)
    return Settings()


def _load_clip(path: Path) -> EncodedClip:
    """Read a file and infer its container from the extension."""
    if not path.is_file():
        raise InvalidInputError(f"input file not found: {path}")
    mime, _ = mimetypes.guess_type(path.name)
    return EncodedClip(
        data=path.read_bytes(),
        format=ContainerFormat.from_mime(mime),
        label=path.name,
        mime_type=mime,
    )


def _emit(payload: dict, as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(payload)


def _run_silence(args: argparse.Namespace) -> dict:
    target = ContainerFormat(args.format)
    clip = create_silence(args.silence, target)
    out_path = Path(args.out or f"silence.{target.extension}")
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(clip.data)
    return {"ok": True, "out": str(out_path), "bytes": len(clip.data), "mime_type": clip.mime_type}


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        0 on success, 1 on a composition error, 2 on bad usage or
        unusable settings.
    """
    args = _parse_args(argv)

    configure_logging(level=args.log_level, force=bool(args.log_level))
    log = get_logger("speechmix.cli")

    try:
        if args.silence is not None:
            _emit(_run_silence(args), args.json)
            return 0

        if not args.inputs:
            print("Provide at least one input file (or --silence SECONDS).")
            return 2

        try:
            service = ComposeService(_load_settings(args.settings))
        except (FileNotFoundError, ConfigValidationError, yaml.YAMLError) as exc:
            print(f"Invalid settings: {exc}")
            return 2

        clips: List[AudioClip] = [_load_clip(Path(p)) for p in args.inputs]
        gaps = normalize_gaps(len(clips), args.gaps)

        if args.dry_run:
            path = service.choose_path(clips, gaps)
            info(log, "dry_run", clips=len(clips), path=path)
            _emit({
                "ok": True,
                "dry_run": True,
                "path": path,
                "clips": [{"file": c.label, "format": c.format.value, "bytes": len(c.data)} for c in clips],
                "gaps": gaps,
            }, args.json)
            print("DRY_RUN_OK")
            return 0

        result = asyncio.run(service.compose(clips, gaps))

        out_path = Path(args.out or f"out.{result.extension}")
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_bytes(result.data)
        _emit({
            "ok": True,
            "out": str(out_path),
            "path": result.path,
            "mime_type": result.mime_type,
            "bytes": len(result.data),
            "gain": result.gain,
        }, args.json)
        return 0

    except ComposeError as exc:
        _emit(exc.to_dict(), args.json)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
