import argparse
import logging
import os
import sys
from pathlib import Path

import sentry_sdk

from _version import __version__
from config import DEFAULT_INPUT_DIR, DEFAULT_OUTPUT_DIR, BatchConfig
from diagnostics import init_diagnostics
from engine.batch import BatchRunner
from security import strip_pii

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_JOB_FAILED = 1
EXIT_BAD_CONFIG = 2

CONSENT_PATH = "~/.negpos/telemetry_consent"


def init_sentry():
    """Consent-gated Sentry init. Without consent the DSN is empty (no-op client)."""
    consent_path = os.path.expanduser(CONSENT_PATH)
    dsn = ""
    if os.path.exists(consent_path) and Path(consent_path).read_text().strip() == "yes":
        dsn = os.environ.get("SENTRY_DSN", "")

    sentry_sdk.init(
        dsn=dsn,
        release=f"negpos@{__version__}",
        environment=os.environ.get("SENTRY_ENV", "development"),
        before_send=strip_pii,
        max_breadcrumbs=50,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="negpos",
        description="Convert scanned color negatives into positives.",
    )
    parser.add_argument(
        "input_dir",
        nargs="?",
        default=None,
        help=f"directory of negatives (default: $NEGPOS_INPUT_DIR or {DEFAULT_INPUT_DIR})",
    )
    parser.add_argument(
        "output_dir",
        nargs="?",
        default=None,
        help=f"directory for positives (default: $NEGPOS_OUTPUT_DIR or {DEFAULT_OUTPUT_DIR})",
    )
    parser.add_argument(
        "-w",
        "--workers",
        type=int,
        default=None,
        help="number of images converted concurrently (default: CPU count)",
    )
    parser.add_argument(
        "--save-inverted",
        action="store_true",
        default=None,
        help="also write the inverted intermediate as inverted_<name>",
    )
    parser.add_argument("--log-dir", default=None, help="structured log directory")
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("--version", action="version", version=f"negpos {__version__}")
    return parser


def run(argv: list[str] | None = None) -> int:
    """Parse arguments, run the batch and return the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        config = BatchConfig.from_env(
            input_dir=args.input_dir,
            output_dir=args.output_dir,
            workers=args.workers,
            save_inverted=args.save_inverted,
        )
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        return EXIT_BAD_CONFIG

    errors = config.validate()
    if errors:
        for err in errors:
            logger.error("Invalid configuration: %s", err)
        return EXIT_BAD_CONFIG

    runner = BatchRunner(config)
    try:
        result = runner.run()
    except (FileNotFoundError, NotADirectoryError) as e:
        logger.error("%s", e)
        return EXIT_BAD_CONFIG
    except KeyboardInterrupt:
        logger.warning("Interrupted; unfinished images were abandoned")
        return EXIT_JOB_FAILED

    summary = result.summary()
    print(
        f"{summary['succeeded']}/{summary['total']} converted, "
        f"{summary['failed']} failed, {summary['cancelled']} cancelled",
        flush=True,
    )
    return EXIT_OK if result.ok else EXIT_JOB_FAILED


def main():
    args = build_parser().parse_args()
    init_diagnostics(log_dir=args.log_dir, verbose=args.verbose)
    init_sentry()
    sys.exit(run(sys.argv[1:]))


if __name__ == "__main__":
    main()
