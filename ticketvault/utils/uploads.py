"""Utilities for naming uploaded files."""
from __future__ import annotations

import secrets
import time
from pathlib import PurePosixPath

from werkzeug.utils import secure_filename

MAX_FILENAME_LENGTH = 120
_TOKEN_BYTES = 6


def sanitize_filename(filename: str) -> str:
    """Return ``filename`` reduced to characters safe for the upload tree.

    Directory components (POSIX or Windows style) are dropped before
    :func:`werkzeug.utils.secure_filename` strips the rest, so the result is
    a single path segment made of ASCII letters, digits, ``_``, ``.`` and ``-``.
    """

    basename = PurePosixPath((filename or "").replace("\\", "/")).name
    safe = secure_filename(basename)
    if not safe:
        return "file"

    if len(safe) > MAX_FILENAME_LENGTH:
        suffix = PurePosixPath(safe).suffix
        if len(suffix) >= MAX_FILENAME_LENGTH:
            suffix = ""
        safe = safe[: MAX_FILENAME_LENGTH - len(suffix)] + suffix
    return safe


def generate_token(nbytes: int = _TOKEN_BYTES) -> str:
    """Return a short random hex token."""

    return secrets.token_hex(nbytes)


def generate_stored_name(original_filename: str, *, timestamp_ms: int | None = None) -> str:
    """Return a unique on-disk name for an upload.

    The name combines the upload time in milliseconds, a random token and the
    sanitized original name, e.g. ``1760870400000-9f2c4a1b7e03-report.pdf``.
    """

    if timestamp_ms is None:
        timestamp_ms = time.time_ns() // 1_000_000
    return f"{timestamp_ms}-{generate_token()}-{sanitize_filename(original_filename)}"
