"""Image decoding via Pillow."""

import logging

import numpy as np
from PIL import Image, UnidentifiedImageError

from engine.buffer import PixelBuffer
from errors import DecodeError

logger = logging.getLogger(__name__)

# Pillow modes that carry a real alpha channel
_ALPHA_MODES = {"RGBA", "LA", "La", "RGBa", "PA"}


def _has_alpha(img: Image.Image) -> bool:
    if img.mode in _ALPHA_MODES:
        return True
    # Palette, RGB or L images with a transparency entry
    return "transparency" in img.info


def _to_8bit(img: Image.Image) -> Image.Image:
    """Scale 16/32-bit single-channel images down to 8-bit 'L'."""
    if img.mode in ("I;16", "I;16B", "I;16L", "I;16N"):
        arr = np.asarray(img, dtype=np.uint16) >> 8
        return Image.fromarray(arr.astype(np.uint8))
    if img.mode == "I":
        arr = np.clip(np.asarray(img, dtype=np.int64), 0, 65535) >> 8
        return Image.fromarray(arr.astype(np.uint8))
    if img.mode == "F":
        arr = np.clip(np.asarray(img, dtype=np.float32), 0.0, 255.0)
        return Image.fromarray(arr.astype(np.uint8))
    return img


def read_image(path) -> PixelBuffer:
    """Decode an image file into an RGBA PixelBuffer.

    Raises:
        DecodeError: If the file is missing, unreadable or not a supported image.
    """
    try:
        with Image.open(path) as img:
            img.load()
            has_alpha = _has_alpha(img)
            rgba = _to_8bit(img).convert("RGBA")
    except FileNotFoundError as e:
        raise DecodeError(f"File not found: {path}") from e
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError, EOFError) as e:
        raise DecodeError(
            f"Failed to decode {path}: {type(e).__name__}"
        ) from e

    pixels = np.array(rgba, dtype=np.uint8)
    buffer = PixelBuffer(pixels, has_alpha=has_alpha)
    logger.debug(
        "Decoded %s: %dx%d mode=%s alpha=%s",
        path,
        buffer.width,
        buffer.height,
        img.mode,
        has_alpha,
    )
    return buffer
