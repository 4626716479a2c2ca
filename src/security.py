"""Security validation gates for negpos."""

import json
import os
import re
from pathlib import Path

SUPPORTED_EXTENSIONS = {".tif", ".tiff", ".jpg", ".jpeg", ".png", ".bmp"}

BLOCKED_OUTPUT_PREFIXES = (
    "/System",
    "/Library",
    "/usr",
    "/bin",
    "/sbin",
    "/etc",
    "/private/var",
    "/private/etc",
)


def is_supported_image(path) -> bool:
    """True if the file extension (case-insensitive) is a supported image type."""
    return Path(path).suffix.lower() in SUPPORTED_EXTENSIONS


def _unsafe_name(name: str) -> bool:
    return ".." in name or "/" in name or "\\" in name or "\x00" in name


def validate_input_file(path) -> list[str]:
    """Validate an input image path. Returns list of errors (empty = valid).

    Checks:
    - File (or symlink target) exists and is a regular, readable file
    - Extension in whitelist
    - Filename is safe (no path traversal)
    """
    errors: list[str] = []
    p = Path(path)
    target = p.resolve() if p.is_symlink() else p

    if not target.exists():
        errors.append(f"File not found: {p.name}")
        return errors

    if not target.is_file():
        errors.append(f"Not a regular file: {p.name}")
        return errors

    if not os.access(str(target), os.R_OK):
        errors.append(f"File is not readable: {p.name}")

    ext = p.suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        errors.append(
            f"Extension '{ext}' not allowed. Allowed: {sorted(SUPPORTED_EXTENSIONS)}"
        )

    if _unsafe_name(p.name):
        errors.append(f"Unsafe filename: {p.name}")

    return errors


def validate_output_dir(path) -> list[str]:
    """Validate an output directory. Returns list of errors (empty = valid).

    The directory need not exist yet; if it does it must be writable.
    """
    errors: list[str] = []
    p = Path(path)

    resolved = str(p.resolve())
    for prefix in BLOCKED_OUTPUT_PREFIXES:
        if resolved == prefix or resolved.startswith(prefix + os.sep):
            errors.append(f"Cannot write to system directory: {prefix}")
            return errors

    if p.exists():
        if not p.is_dir():
            errors.append(f"Output path is not a directory: {p}")
        elif not os.access(str(p), os.W_OK):
            errors.append(f"Output directory is not writable: {p}")

    return errors


# --- PII stripping for Sentry and crash dumps ---

_HOME = os.path.expanduser("~")
_USERNAME = os.path.basename(_HOME)
_PATH_PATTERN = re.compile(r"/Users/[^/\s]+|/home/[^/\s]+|C:\\Users\\[^\\\s]+")
_SENSITIVE_KEYS = {"token", "auth", "key", "secret", "password", "dsn"}


def _scrub_dict(d: dict):
    """Redact values for keys that look sensitive."""
    for key in list(d.keys()):
        if any(s in key.lower() for s in _SENSITIVE_KEYS):
            d[key] = "<REDACTED>"


def strip_pii(event: dict, hint: dict) -> dict:
    """Sentry before_send hook. Strips file paths and secrets.

    Also usable for crash dump sanitization.
    """
    event_str = json.dumps(event)
    # Replace OS username and home path
    event_str = event_str.replace(_HOME, "<HOME>")
    if _USERNAME:
        event_str = event_str.replace(_USERNAME, "<USER>")
    event_str = _PATH_PATTERN.sub("<REDACTED_PATH>", event_str)
    event = json.loads(event_str)

    _scrub_dict(event.get("extra", {}))
    for ctx in event.get("contexts", {}).values():
        if isinstance(ctx, dict):
            _scrub_dict(ctx)
    return event
