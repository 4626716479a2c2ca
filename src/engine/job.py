"""Image job — decode, convert and encode one negative, with cancel."""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import sentry_sdk

from effects.channel_stats import ChannelStats
from engine.buffer import PixelBuffer
from engine.pipeline import negative_to_positive
from errors import DecodeError, EncodeError, PreconditionError
from imaging.reader import read_image
from imaging.writer import DEFAULT_FORMAT, write_image
from security import validate_input_file

logger = logging.getLogger(__name__)


class JobStatus(Enum):
    PENDING = "pending"
    DECODED = "decoded"
    INVERTED = "inverted"
    MEASURED = "measured"
    STRETCHED = "stretched"
    ENCODED = "encoded"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset(
    {JobStatus.ENCODED, JobStatus.CANCELLED, JobStatus.FAILED}
)

# Pipeline stage -> status reached once the stage completes
_STAGE_STATUS = {
    "invert": JobStatus.INVERTED,
    "measure": JobStatus.MEASURED,
    "stretch": JobStatus.STRETCHED,
}


class JobCancelled(Exception):
    """Raised inside a job to abandon it between stages."""


@dataclass
class ImageJob:
    """Tracks one input file through Decoded → Inverted → Measured → Stretched → Encoded."""

    input_path: Path
    output_path: Path
    inverted_path: Path | None = None
    output_format: str = DEFAULT_FORMAT
    status: JobStatus = JobStatus.PENDING
    error: str | None = None
    stats: ChannelStats | None = None
    elapsed_ms: float = 0.0
    _wrote_inverted: bool = field(default=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _cancel_event: threading.Event = field(
        default_factory=threading.Event, repr=False
    )

    def __post_init__(self):
        self.input_path = Path(self.input_path)
        self.output_path = Path(self.output_path)
        if self.inverted_path is not None:
            self.inverted_path = Path(self.inverted_path)

    @property
    def done(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def succeeded(self) -> bool:
        return self.status == JobStatus.ENCODED

    def cancel(self):
        self._cancel_event.set()

    def _set_status(self, status: JobStatus):
        with self._lock:
            self.status = status

    def _checkpoint(self):
        if self._cancel_event.is_set():
            raise JobCancelled()

    def _on_stage(self, stage: str, buffer: PixelBuffer):
        self._set_status(_STAGE_STATUS[stage])
        if stage == "invert" and self.inverted_path is not None:
            write_image(buffer, self.inverted_path, fmt=self.output_format)
            self._wrote_inverted = True
            logger.info("Inverted image saved: %s", self.inverted_path)
        self._checkpoint()

    def _discard_inverted(self):
        """Remove the inverted intermediate this job wrote, if any."""
        if not self._wrote_inverted:
            return
        try:
            self.inverted_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove %s: %s", self.inverted_path.name, e)
        self._wrote_inverted = False

    def run(self) -> "ImageJob":
        """Execute the job. Errors end the job as FAILED and are not raised."""
        t0 = time.monotonic()
        try:
            self._checkpoint()

            problems = validate_input_file(self.input_path)
            if problems:
                raise DecodeError("; ".join(problems))

            buffer = read_image(self.input_path)
            self._set_status(JobStatus.DECODED)
            self._checkpoint()

            self.stats = negative_to_positive(buffer, on_stage=self._on_stage)

            write_image(buffer, self.output_path, fmt=self.output_format)
            self._set_status(JobStatus.ENCODED)
            logger.info("Image converted, saved: %s", self.output_path)

        except JobCancelled:
            self._discard_inverted()
            self._set_status(JobStatus.CANCELLED)
            logger.info("Job for %s cancelled", self.input_path.name)
        except (DecodeError, EncodeError, PreconditionError) as e:
            self._discard_inverted()
            sentry_sdk.capture_exception(e)
            logger.error(
                "Job for %s failed: %s: %s",
                self.input_path.name,
                type(e).__name__,
                e,
            )
            with self._lock:
                self.status = JobStatus.FAILED
                self.error = f"{type(e).__name__}: {e}"
        except Exception as e:
            self._discard_inverted()
            sentry_sdk.capture_exception(e)
            logger.exception("Job for %s crashed", self.input_path.name)
            with self._lock:
                self.status = JobStatus.FAILED
                self.error = f"Unexpected error: {type(e).__name__}"
        finally:
            self.elapsed_ms = (time.monotonic() - t0) * 1000

        return self

    def to_dict(self) -> dict:
        """Return serializable status dict."""
        with self._lock:
            return {
                "input_path": str(self.input_path),
                "output_path": str(self.output_path),
                "status": self.status.value,
                "error": self.error,
                "stats": self.stats.as_dict() if self.stats else None,
                "elapsed_ms": round(self.elapsed_ms, 1),
            }
