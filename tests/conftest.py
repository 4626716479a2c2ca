import numpy as np
import pytest
from PIL import Image

from engine import pipeline


def negative_frame(h=32, w=48, seed=42):
    """Random RGBA frame with samples kept away from 0/255 like a real scan."""
    rng = np.random.default_rng(seed)
    frame = rng.integers(30, 220, (h, w, 4), dtype=np.uint8)
    frame[:, :, 3] = 255
    return frame


def write_png(path, frame: np.ndarray):
    """Write an RGBA (or RGB) uint8 array to ``path`` with Pillow."""
    Image.fromarray(frame).save(path, format="PNG")
    return path


@pytest.fixture(autouse=True)
def _reset_stage_timing():
    """Stage timing is module-level; isolate it per test."""
    pipeline.flush_timing()
    yield
    pipeline.flush_timing()


@pytest.fixture
def input_dir(tmp_path):
    d = tmp_path / "input"
    d.mkdir()
    return d


@pytest.fixture
def output_dir(tmp_path):
    return tmp_path / "output"


@pytest.fixture
def negatives(input_dir):
    """Three small negatives in different formats, plus a non-image file."""
    frame = negative_frame()
    write_png(input_dir / "roll1_01.png", frame)
    Image.fromarray(frame[:, :, :3]).save(input_dir / "roll1_02.JPG", format="JPEG")
    Image.fromarray(frame[:, :, :3]).save(input_dir / "roll1_03.tif", format="TIFF")
    (input_dir / "notes.txt").write_text("exposure notes")
    return input_dir
