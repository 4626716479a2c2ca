"""Input discovery — enumerate candidate images and derive output names."""

import logging
from pathlib import Path

from security import is_supported_image

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_PREFIX = "changed_"


def list_images(input_dir) -> list[Path]:
    """List supported image files directly inside ``input_dir``, sorted by name.

    Raises:
        FileNotFoundError: If the directory does not exist.
        NotADirectoryError: If the path is not a directory.
    """
    d = Path(input_dir)
    if not d.exists():
        raise FileNotFoundError(f"Input directory not found: {d}")
    if not d.is_dir():
        raise NotADirectoryError(f"Input path is not a directory: {d}")

    found = sorted(
        (p for p in d.iterdir() if p.is_file() and is_supported_image(p)),
        key=lambda p: p.name,
    )
    logger.debug("Found %d candidate image(s) in %s", len(found), d)
    return found


def output_path_for(
    input_path, output_dir, prefix: str = DEFAULT_OUTPUT_PREFIX
) -> Path:
    """Output file for ``input_path``: ``prefix + original name`` in ``output_dir``.

    The original extension is kept even though the encoder always writes TIFF.
    """
    return Path(output_dir) / f"{prefix}{Path(input_path).name}"
