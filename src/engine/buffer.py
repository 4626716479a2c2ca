"""Pixel buffer — one decoded image as an (H, W, 4) RGBA uint8 array."""

import numpy as np

from errors import PreconditionError

# Sample offsets within a pixel
RED, GREEN, BLUE, ALPHA = 0, 1, 2, 3
COLOR_CHANNELS = (RED, GREEN, BLUE)
CHANNEL_NAMES = {RED: "red", GREEN: "green", BLUE: "blue"}


class PixelBuffer:
    """Owns the samples of one image for the lifetime of a job.

    Transforms mutate ``pixels`` in place; nothing hands the array to a
    second job.
    """

    def __init__(self, pixels: np.ndarray, has_alpha: bool = True):
        if not isinstance(pixels, np.ndarray):
            raise PreconditionError(
                f"Expected ndarray, got {type(pixels).__name__}"
            )
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise PreconditionError(
                f"Expected (H, W, 4) RGBA array, got shape {pixels.shape}"
            )
        if pixels.dtype != np.uint8:
            raise PreconditionError(f"Expected uint8 samples, got {pixels.dtype}")
        self.pixels = pixels
        self.has_alpha = has_alpha

    @classmethod
    def from_rgb(cls, rgb: np.ndarray) -> "PixelBuffer":
        """Wrap an (H, W, 3) array, adding opaque alpha."""
        if rgb.ndim != 3 or rgb.shape[2] != 3:
            raise PreconditionError(
                f"Expected (H, W, 3) RGB array, got shape {rgb.shape}"
            )
        h, w = rgb.shape[:2]
        pixels = np.empty((h, w, 4), dtype=np.uint8)
        pixels[:, :, :3] = rgb
        pixels[:, :, ALPHA] = 255
        return cls(pixels, has_alpha=False)

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def rgb(self) -> np.ndarray:
        """View of the color samples (writes go through to the buffer)."""
        return self.pixels[:, :, :3]

    @property
    def alpha(self) -> np.ndarray:
        return self.pixels[:, :, ALPHA]

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(self.pixels.copy(), has_alpha=self.has_alpha)

    def __repr__(self) -> str:
        return (
            f"PixelBuffer(width={self.width}, height={self.height}, "
            f"has_alpha={self.has_alpha})"
        )
