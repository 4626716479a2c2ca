"""Invert — 255-complement of the RGB channels, preserves alpha."""

import numpy as np

from engine.buffer import PixelBuffer


def invert(buffer: PixelBuffer) -> PixelBuffer:
    """Invert RGB channels in place. Returns the same buffer."""
    rgb = buffer.rgb
    np.subtract(255, rgb, out=rgb)
    return buffer
