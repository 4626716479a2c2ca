"""Tests for imaging.reader — Pillow decode into RGBA PixelBuffer."""

import numpy as np
import pytest
from PIL import Image

from conftest import negative_frame, write_png
from errors import DecodeError
from imaging.reader import read_image


@pytest.mark.smoke
def test_rgba_png_round_trips_exactly(tmp_path):
    frame = negative_frame()
    frame[0, 0, 3] = 17
    path = write_png(tmp_path / "neg.png", frame)
    buffer = read_image(path)
    assert buffer.has_alpha is True
    np.testing.assert_array_equal(buffer.pixels, frame)


def test_rgb_gets_opaque_alpha(tmp_path):
    rgb = negative_frame()[:, :, :3]
    path = tmp_path / "neg.bmp"
    Image.fromarray(rgb).save(path, format="BMP")
    buffer = read_image(path)
    assert buffer.has_alpha is False
    np.testing.assert_array_equal(buffer.rgb, rgb)
    np.testing.assert_array_equal(buffer.alpha, 255)


def test_grayscale_expands_to_three_channels(tmp_path):
    gray = np.arange(64, dtype=np.uint8).reshape(8, 8)
    path = tmp_path / "gray.png"
    Image.fromarray(gray).save(path)
    buffer = read_image(path)
    for ch in range(3):
        np.testing.assert_array_equal(buffer.pixels[:, :, ch], gray)


def test_16bit_tiff_scaled_to_8bit(tmp_path):
    data = np.full((4, 4), 0x8000, dtype=np.uint16)
    data[0, 0] = 0xFFFF
    path = tmp_path / "scan16.tif"
    Image.fromarray(data).save(path, format="TIFF")
    buffer = read_image(path)
    assert buffer.pixels.dtype == np.uint8
    assert buffer.pixels[1, 1, 0] == 0x80
    assert buffer.pixels[0, 0, 0] == 0xFF


def test_missing_file(tmp_path):
    with pytest.raises(DecodeError, match="not found"):
        read_image(tmp_path / "nope.png")


def test_garbage_file(tmp_path):
    path = tmp_path / "bad.jpg"
    path.write_bytes(b"\xff\xd8 this is not really a jpeg")
    with pytest.raises(DecodeError) as exc_info:
        read_image(path)
    assert exc_info.value.__cause__ is not None


def test_truncated_png(tmp_path):
    path = write_png(tmp_path / "full.png", negative_frame(h=64, w=64))
    data = path.read_bytes()
    cut = tmp_path / "cut.png"
    cut.write_bytes(data[: len(data) // 2])
    with pytest.raises(DecodeError):
        read_image(cut)


def test_rgb_png_with_transparency_key_has_alpha(tmp_path):
    rgb = np.zeros((2, 2, 3), dtype=np.uint8)
    rgb[0, 0] = [10, 20, 30]
    path = tmp_path / "keyed.png"
    Image.fromarray(rgb).save(path, transparency=(10, 20, 30))
    buffer = read_image(path)
    assert buffer.has_alpha is True
    assert buffer.alpha[0, 0] == 0
    assert buffer.alpha[1, 1] == 255


def test_grayscale_png_with_transparency_key_has_alpha(tmp_path):
    gray = np.array([[0, 128], [128, 255]], dtype=np.uint8)
    path = tmp_path / "keyed_gray.png"
    Image.fromarray(gray).save(path, transparency=0)
    buffer = read_image(path)
    assert buffer.has_alpha is True
    assert buffer.alpha[0, 0] == 0
    assert buffer.alpha[1, 1] == 255
