"""Negative-to-positive pipeline — invert, measure, stretch on one buffer.

The three passes run strictly in order: the stretch uses statistics measured
on the inverted buffer, not on the original negative.

Includes rolling per-stage timing stats and a slow-stage warning.
"""

import logging
import threading
import time
from collections import defaultdict, deque
from typing import Callable

from effects.channel_stats import ChannelStats, scan
from effects.invert import invert
from effects.range_stretch import stretch
from engine.buffer import CHANNEL_NAMES, COLOR_CHANNELS, PixelBuffer

logger = logging.getLogger(__name__)

STAGES = ("invert", "measure", "stretch")

# Per-stage timing threshold (milliseconds)
STAGE_WARN_MS = 2000

# Worker threads all record into the same window
_timing_lock = threading.Lock()
_stage_timing: dict[str, deque] = defaultdict(lambda: deque(maxlen=100))


def record_timing(stage: str, elapsed_ms: float):
    """Record a timing sample for a stage."""
    with _timing_lock:
        _stage_timing[stage].append(elapsed_ms)


def get_stage_stats() -> dict[str, dict]:
    """Return p50/p95/max per stage."""
    with _timing_lock:
        snapshot = {stage: list(samples) for stage, samples in _stage_timing.items()}
    result = {}
    for stage, samples in snapshot.items():
        s = sorted(samples)
        result[stage] = {
            "p50": s[len(s) // 2] if s else 0,
            "p95": s[int(len(s) * 0.95)] if len(s) >= 20 else None,
            "max": max(s) if s else 0,
            "samples": len(s),
        }
    return result


def flush_timing():
    """Clear all timing stats."""
    with _timing_lock:
        _stage_timing.clear()


def _noop(stage: str, buffer: PixelBuffer):
    pass


def _timed(stage: str, buffer: PixelBuffer, fn, *args):
    t0 = time.monotonic()
    result = fn(buffer, *args)
    elapsed_ms = (time.monotonic() - t0) * 1000
    record_timing(stage, elapsed_ms)

    if elapsed_ms > STAGE_WARN_MS:
        logger.warning(
            "Stage %s took %.0fms (>%dms warn threshold) on %dx%d image",
            stage,
            elapsed_ms,
            STAGE_WARN_MS,
            buffer.width,
            buffer.height,
        )
    else:
        logger.debug("Stage %s took %.1fms", stage, elapsed_ms)
    return result


def negative_to_positive(
    buffer: PixelBuffer,
    on_stage: Callable[[str, PixelBuffer], None] | None = None,
) -> ChannelStats:
    """Convert a negative buffer to a positive, in place.

    Args:
        buffer:   Decoded negative. Mutated in place.
        on_stage: Optional hook called with (stage, buffer) after each stage
                  completes. Exceptions it raises abort the remaining stages.

    Returns:
        The channel statistics measured on the inverted buffer.

    Raises:
        PreconditionError: If the buffer is empty.
    """
    if on_stage is None:
        on_stage = _noop

    _timed("invert", buffer, invert)
    on_stage("invert", buffer)

    stats = _timed("measure", buffer, scan)
    for ch, rng in zip(COLOR_CHANNELS, stats.ranges()):
        if rng.is_degenerate:
            logger.info(
                "Channel %s is flat at %d; mapping it to 0", CHANNEL_NAMES[ch], rng.min
            )
    on_stage("measure", buffer)

    _timed("stretch", buffer, stretch, stats)
    on_stage("stretch", buffer)
    return stats
