"""Range stretch — per-channel linear remap of [min, max] onto [0, 255]."""

import numpy as np

from effects.channel_stats import ChannelRange, ChannelStats
from engine.buffer import COLOR_CHANNELS, PixelBuffer
from errors import PreconditionError


def _validate_range(rng: ChannelRange):
    if not (0 <= rng.min <= 255 and 0 <= rng.max <= 255):
        raise PreconditionError(
            f"Channel range [{rng.min}, {rng.max}] outside [0, 255]"
        )
    if rng.min > rng.max:
        raise PreconditionError(f"Channel range min {rng.min} > max {rng.max}")


def build_stretch_lut(rng: ChannelRange) -> np.ndarray:
    """Build a 256-entry LUT mapping each sample value through the stretch.

    Values at or below ``min`` go to 0, at or above ``max`` go to 255, and
    values in between are scaled with integer truncation. A degenerate range
    (``min == max``) maps every value to 0.
    """
    _validate_range(rng)

    if rng.is_degenerate:
        return np.zeros(256, dtype=np.uint8)

    values = np.arange(256, dtype=np.int32)
    lut = (values - rng.min) * 255 // rng.span
    lut[values <= rng.min] = 0
    lut[values >= rng.max] = 255
    return lut.astype(np.uint8)


def stretch(buffer: PixelBuffer, stats: ChannelStats) -> PixelBuffer:
    """Stretch each color channel in place using its measured range.

    Raises:
        PreconditionError: If any range is invalid (min > max or out of bounds).
    """
    # Validate all three before touching the buffer
    luts = [build_stretch_lut(rng) for rng in stats.ranges()]

    frame = buffer.pixels
    for ch, lut in zip(COLOR_CHANNELS, luts):
        frame[:, :, ch] = np.take(lut, frame[:, :, ch])

    return buffer
