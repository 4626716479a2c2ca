"""Batch runner — one image job per input file on a worker pool.

Jobs share no mutable state; a failing job never affects its siblings.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from config import BatchConfig
from engine.job import ImageJob, JobStatus
from imaging.ingest import list_images, output_path_for

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Outcome of one batch run."""

    jobs: list[ImageJob] = field(default_factory=list)

    def _count(self, status: JobStatus) -> int:
        return sum(1 for j in self.jobs if j.status == status)

    @property
    def succeeded(self) -> int:
        return self._count(JobStatus.ENCODED)

    @property
    def failed(self) -> int:
        return self._count(JobStatus.FAILED)

    @property
    def cancelled(self) -> int:
        return self._count(JobStatus.CANCELLED)

    @property
    def ok(self) -> bool:
        return self.failed == 0 and self.cancelled == 0

    def failures(self) -> list[ImageJob]:
        return [j for j in self.jobs if j.status == JobStatus.FAILED]

    def summary(self) -> dict:
        return {
            "total": len(self.jobs),
            "succeeded": self.succeeded,
            "failed": self.failed,
            "cancelled": self.cancelled,
            "failures": {str(j.input_path.name): j.error for j in self.failures()},
        }


class BatchRunner:
    """Converts every supported image in ``config.input_dir``."""

    def __init__(self, config: BatchConfig):
        self.config = config
        self._jobs: list[ImageJob] = []
        self._lock = threading.Lock()
        self._cancelled = False

    @property
    def jobs(self) -> list[ImageJob]:
        with self._lock:
            return list(self._jobs)

    def discover(self):
        """List candidate input files."""
        return list_images(self.config.input_dir)

    def _make_job(self, path) -> ImageJob:
        cfg = self.config
        inverted = (
            output_path_for(path, cfg.output_dir, prefix=cfg.inverted_prefix)
            if cfg.save_inverted
            else None
        )
        return ImageJob(
            input_path=path,
            output_path=output_path_for(path, cfg.output_dir, prefix=cfg.output_prefix),
            inverted_path=inverted,
            output_format=cfg.output_format,
        )

    def run(self) -> BatchResult:
        """Run one job per discovered file and wait for all of them.

        Raises:
            FileNotFoundError: If the input directory does not exist.
            NotADirectoryError: If the input path is not a directory.
        """
        paths = self.discover()
        if not paths:
            logger.info("No image files found in %s", self.config.input_dir)
            return BatchResult()

        self.config.output_dir.mkdir(parents=True, exist_ok=True)

        jobs = [self._make_job(p) for p in paths]
        with self._lock:
            self._jobs = jobs
            if self._cancelled:
                for job in jobs:
                    job.cancel()

        logger.info(
            "Converting %d image(s) with %d worker(s)", len(jobs), self.config.workers
        )
        with ThreadPoolExecutor(
            max_workers=self.config.workers, thread_name_prefix="negpos"
        ) as pool:
            # ImageJob.run never raises; results are read off the jobs themselves
            try:
                list(pool.map(ImageJob.run, jobs))
            except KeyboardInterrupt:
                self.cancel()
                raise

        result = BatchResult(jobs=jobs)
        summary = result.summary()
        if result.failed:
            logger.warning(
                "Batch finished: %d succeeded, %d failed, %d cancelled",
                summary["succeeded"],
                summary["failed"],
                summary["cancelled"],
            )
            for name, error in summary["failures"].items():
                logger.warning("  %s: %s", name, error)
        else:
            logger.info(
                "Batch finished: %d succeeded, %d cancelled",
                summary["succeeded"],
                summary["cancelled"],
            )
        return result

    def cancel(self) -> int:
        """Cancel every job that has not finished. Returns how many were signalled."""
        with self._lock:
            self._cancelled = True
            pending = [j for j in self._jobs if not j.done]
        for job in pending:
            job.cancel()
        return len(pending)
