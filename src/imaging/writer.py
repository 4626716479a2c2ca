"""Image encoding via Pillow."""

import logging
import os
import tempfile
from pathlib import Path

from PIL import Image

from engine.buffer import PixelBuffer
from errors import EncodeError

logger = logging.getLogger(__name__)

DEFAULT_FORMAT = "TIFF"


def _default_file_mode() -> int:
    # mkstemp files are 0600; outputs get the mode open() would give them
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def write_image(buffer: PixelBuffer, path, fmt: str = DEFAULT_FORMAT) -> Path:
    """Encode ``buffer`` to ``path`` in container format ``fmt``.

    The format is fixed by ``fmt`` regardless of the file extension. The
    image is written to a temporary file in the same directory and renamed
    into place, so a failed write leaves no partial output.

    Raises:
        EncodeError: If the image cannot be encoded or the file cannot be written.
    """
    target = Path(path)
    if buffer.has_alpha:
        img = Image.fromarray(buffer.pixels)
    else:
        img = Image.fromarray(buffer.rgb.copy())

    tmp_path = None
    try:
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{target.name}.", suffix=".part", dir=str(target.parent)
        )
        with os.fdopen(fd, "wb") as fh:
            img.save(fh, format=fmt)
        os.chmod(tmp_path, _default_file_mode())
        os.replace(tmp_path, target)
        tmp_path = None
    except (OSError, ValueError, KeyError) as e:
        raise EncodeError(
            f"Failed to write {target.name} as {fmt}: {type(e).__name__}"
        ) from e
    finally:
        if tmp_path is not None:
            Path(tmp_path).unlink(missing_ok=True)

    logger.debug("Encoded %s (%s, %dx%d)", target, fmt, buffer.width, buffer.height)
    return target
