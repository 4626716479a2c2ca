"""Diagnostics for batch runs.

Everything lives under ~/.negpos:
- logs/negpos.log        JSON lines, rotated (NEGPOS_LOG_DIR, NEGPOS_LOG_LEVEL)
- logs/negpos_fault.log  faulthandler output for hard crashes in native code
- crash_reports/         one PII-stripped JSON dump per unhandled exception

A plain stderr handler carries the per-image progress lines.
"""

import datetime
import faulthandler
import json
import logging
import logging.handlers
import os
import sys
import time
import traceback
from pathlib import Path


logger = logging.getLogger(__name__)

APP_DIR = "~/.negpos"
LOG_NAME = "negpos.log"
FAULT_LOG_NAME = "negpos_fault.log"

MAX_CRASH_REPORTS = 5
MAX_LOG_AGE_DAYS = 7
LOG_MAX_BYTES = 10_000_000
LOG_BACKUPS = 7

CONSOLE_FORMAT = "%(asctime)s %(levelname)-7s %(message)s"

# Kept open for the life of the process; faulthandler writes to its fd
_fault_file = None


def _app_dir() -> Path:
    return Path(os.path.expanduser(APP_DIR))


def resolve_log_dir(requested: str | None) -> Path:
    """Return the log directory, refusing anything outside ~/.negpos."""
    default = _app_dir() / "logs"
    if not requested:
        return default
    root = _app_dir().resolve()
    candidate = Path(requested).resolve()
    if candidate != root and root not in candidate.parents:
        logger.warning("Log dir %s is outside %s, using default", requested, APP_DIR)
        return default
    return candidate


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.datetime.fromtimestamp(record.created, tz=datetime.timezone.utc)
        entry = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        exc = record.exc_info[1] if record.exc_info else None
        if exc is not None:
            entry["exception"] = {
                "type": type(exc).__name__,
                "traceback": self.formatException(record.exc_info),
            }
        return json.dumps(entry)


def _prune(directory: Path, pattern: str, keep: int | None = None, max_age_days: int | None = None):
    """Delete files matching ``pattern`` beyond the newest ``keep`` or older than ``max_age_days``."""
    try:
        files = sorted(directory.glob(pattern), key=lambda f: f.stat().st_mtime, reverse=True)
        cutoff = time.time() - max_age_days * 86400 if max_age_days is not None else None
        for i, f in enumerate(files):
            too_many = keep is not None and i >= keep
            too_old = cutoff is not None and f.stat().st_mtime < cutoff
            if too_many or too_old:
                f.unlink(missing_ok=True)
    except OSError:
        logger.debug("Pruning %s in %s skipped", pattern, directory)


def setup_structured_logging(log_dir: str | None = None) -> Path:
    """Attach the rotating JSON file handler to the root logger.

    ``log_dir`` falls back to $NEGPOS_LOG_DIR, then ~/.negpos/logs.
    Returns the directory actually used.
    """
    directory = resolve_log_dir(log_dir or os.environ.get("NEGPOS_LOG_DIR"))
    directory.mkdir(mode=0o700, parents=True, exist_ok=True)
    _prune(directory, f"{LOG_NAME}*", max_age_days=MAX_LOG_AGE_DAYS)

    handler = logging.handlers.RotatingFileHandler(
        directory / LOG_NAME, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUPS
    )
    handler.setFormatter(JSONFormatter())

    level_name = os.environ.get("NEGPOS_LOG_LEVEL", "INFO").upper()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    root.addHandler(handler)
    return directory


def setup_console_logging(verbose: bool = False) -> logging.Handler:
    """Attach a human-readable stderr handler to the root logger."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
    handler.setLevel(logging.DEBUG if verbose else logging.INFO)

    root = logging.getLogger()
    if verbose:
        root.setLevel(logging.DEBUG)
    elif root.level == logging.NOTSET or root.level > logging.INFO:
        root.setLevel(logging.INFO)
    root.addHandler(handler)
    return handler


def setup_faulthandler(log_dir: Path):
    """Send native crash tracebacks to their own file.

    The rotating handler would invalidate the descriptor on rollover, so this
    never shares the main log file.
    """
    global _fault_file
    path = Path(log_dir) / FAULT_LOG_NAME
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        _fault_file = os.fdopen(fd, "a", buffering=1)
        faulthandler.enable(file=_fault_file, all_threads=True)
    except OSError as e:
        print(f"WARNING: Could not enable faulthandler: {e}", file=sys.stderr)


def write_crash_report(exc_type, exc_value, exc_tb, crash_dir) -> Path:
    """Write a PII-stripped JSON crash dump readable only by the owner."""
    from security import strip_pii

    crash_dir = Path(crash_dir)
    crash_dir.mkdir(mode=0o700, parents=True, exist_ok=True)

    stamp = datetime.datetime.now(tz=datetime.timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    report = {
        "timestamp": stamp,
        "exception_type": exc_type.__name__ if exc_type else "Unknown",
        "exception_message": str(exc_value),
        "traceback": traceback.format_exception(exc_type, exc_value, exc_tb),
        "python_version": sys.version,
        "platform": sys.platform,
    }
    report = strip_pii({"extra": report}, {})["extra"]

    path = crash_dir / f"crash_{stamp}.json"
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "w") as fh:
        json.dump(report, fh, indent=2)

    _prune(crash_dir, "crash_*.json", keep=MAX_CRASH_REPORTS)
    return path


def setup_excepthook(crash_dir: str | None = None):
    """Dump unhandled exceptions to ``crash_dir``, then defer to the default hook."""
    target = Path(crash_dir) if crash_dir else _app_dir() / "crash_reports"

    def _crash_excepthook(exc_type, exc_value, exc_tb):
        try:
            write_crash_report(exc_type, exc_value, exc_tb, target)
        except Exception as e:
            print(f"WARNING: Could not write crash report: {e}", file=sys.stderr)
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = _crash_excepthook


def init_diagnostics(log_dir: str | None = None, verbose: bool = False) -> Path:
    """Initialize all diagnostic layers. Call from main.py."""
    directory = setup_structured_logging(log_dir)
    setup_console_logging(verbose)
    setup_faulthandler(directory)
    setup_excepthook()
    logger.debug("Diagnostics initialized: logging=%s, faulthandler=enabled", directory)
    return directory
