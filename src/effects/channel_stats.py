"""Channel statistics — per-channel min/max over the current buffer state."""

from dataclasses import dataclass

import numpy as np

from engine.buffer import BLUE, GREEN, RED, PixelBuffer
from errors import PreconditionError


@dataclass(frozen=True)
class ChannelRange:
    """Observed [min, max] of one color channel."""

    min: int
    max: int

    @property
    def is_degenerate(self) -> bool:
        """True when the channel holds a single value (stretch divisor is zero)."""
        return self.min == self.max

    @property
    def span(self) -> int:
        return self.max - self.min


@dataclass(frozen=True)
class ChannelStats:
    """Independent ranges for red, green and blue. Alpha is never measured."""

    red: ChannelRange
    green: ChannelRange
    blue: ChannelRange

    def ranges(self) -> tuple[ChannelRange, ChannelRange, ChannelRange]:
        """Ranges in sample order (R, G, B)."""
        return (self.red, self.green, self.blue)

    def as_dict(self) -> dict:
        return {
            "red": [self.red.min, self.red.max],
            "green": [self.green.min, self.green.max],
            "blue": [self.blue.min, self.blue.max],
        }


def _channel_range(channel: np.ndarray) -> ChannelRange:
    return ChannelRange(min=int(channel.min()), max=int(channel.max()))


def scan(buffer: PixelBuffer) -> ChannelStats:
    """Measure min and max of each color channel. Does not mutate the buffer.

    Raises:
        PreconditionError: If the buffer holds no pixels.
    """
    if buffer.pixel_count < 1:
        raise PreconditionError(
            f"Cannot measure an empty image ({buffer.width}x{buffer.height})"
        )

    frame = buffer.pixels
    return ChannelStats(
        red=_channel_range(frame[:, :, RED]),
        green=_channel_range(frame[:, :, GREEN]),
        blue=_channel_range(frame[:, :, BLUE]),
    )
