"""Batch configuration — explicit input/output directories and worker count."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from imaging.ingest import DEFAULT_OUTPUT_PREFIX
from imaging.writer import DEFAULT_FORMAT
from security import validate_output_dir

DEFAULT_INPUT_DIR = "input"
DEFAULT_OUTPUT_DIR = "output"
DEFAULT_INVERTED_PREFIX = "inverted_"

_TRUTHY = {"1", "true", "yes", "on"}


def _default_workers() -> int:
    return os.cpu_count() or 1


@dataclass
class BatchConfig:
    """Where to read negatives, where to write positives, and how many at once."""

    input_dir: Path = field(default_factory=lambda: Path(DEFAULT_INPUT_DIR))
    output_dir: Path = field(default_factory=lambda: Path(DEFAULT_OUTPUT_DIR))
    workers: int = field(default_factory=_default_workers)
    output_prefix: str = DEFAULT_OUTPUT_PREFIX
    output_format: str = DEFAULT_FORMAT
    save_inverted: bool = False
    inverted_prefix: str = DEFAULT_INVERTED_PREFIX

    def __post_init__(self):
        self.input_dir = Path(self.input_dir)
        self.output_dir = Path(self.output_dir)

    @classmethod
    def from_env(cls, **overrides) -> "BatchConfig":
        """Build from NEGPOS_* environment variables; ``overrides`` win when not None."""
        values = {
            "input_dir": os.environ.get("NEGPOS_INPUT_DIR", DEFAULT_INPUT_DIR),
            "output_dir": os.environ.get("NEGPOS_OUTPUT_DIR", DEFAULT_OUTPUT_DIR),
            "save_inverted": os.environ.get("NEGPOS_SAVE_INVERTED", "").lower()
            in _TRUTHY,
        }
        workers = os.environ.get("NEGPOS_WORKERS", "")
        if workers:
            try:
                values["workers"] = int(workers)
            except ValueError:
                raise ValueError(
                    f"NEGPOS_WORKERS must be an integer, got {workers!r}"
                ) from None

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def validate(self) -> list[str]:
        """Return list of configuration errors (empty = valid)."""
        errors: list[str] = []
        if self.workers < 1:
            errors.append(f"workers must be >= 1, got {self.workers}")
        if self.input_dir.resolve() == self.output_dir.resolve():
            errors.append("Input and output directories must differ")
        if not self.output_prefix:
            errors.append("Output prefix must not be empty")
        if self.save_inverted and self.inverted_prefix == self.output_prefix:
            errors.append("Inverted prefix must differ from output prefix")
        errors.extend(validate_output_dir(self.output_dir))
        return errors
