"""
Timing Utilities.

A small context manager used to put `seconds=` on composition and
decode log lines. Works the same inside coroutines since it only reads
perf_counter() on entry and exit.

Example:
    with timeit("mix") as t:
        samples = mix_buffers(buffers, offsets, channels, total)
    verbose(_LOG, "mixed", seconds=t.seconds)
"""
from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import Any, Dict, Optional


@dataclass
class Timing:
    """
    Timing measurement result.

    Attributes:
        name: What was timed (e.g. "decode", "compose").
        seconds: Duration in seconds.
        meta: Optional metadata attached by the caller.
    """
    name: str
    seconds: float
    meta: Optional[Dict[str, Any]] = None


class timeit:
    """
    Context manager for timing code blocks.

    The Timing is available as `.timing` after the block exits, and
    `.seconds` gives the duration rounded for logging (-1.0 while the
    block is still running).
    """

    def __init__(self, name: str, meta: Optional[Dict[str, Any]] = None):
        self.name = name
        self.meta = meta
        self._t0: float | None = None
        self.timing: Timing | None = None

    def __enter__(self) -> "timeit":
        self._t0 = perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        t1 = perf_counter()
        assert self._t0 is not None
        self.timing = Timing(name=self.name, seconds=(t1 - self._t0), meta=self.meta)

    @property
    def seconds(self) -> float:
        if self.timing is None:
            return -1.0
        return round(self.timing.seconds, 4)
