"""Shared helpers — cell inspection, hashing, timestamps."""

from __future__ import annotations

import hashlib
import math
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


def is_blank(value: Any) -> bool:
    """Return True for absent cells: ``None``, whitespace-only text or NaN."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, float):
        return math.isnan(value)
    return False


def cell_text(value: Any) -> str:
    """Lower-cased, stripped text of a cell (``""`` for blanks)."""
    if is_blank(value):
        return ""
    return str(value).strip().lower()


def sha256_file(path: Path) -> str:
    """Return the hex SHA-256 digest of *path*."""
    h = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def utcnow_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def format_confidence(confidence: float) -> str:
    """Render a 0..1 confidence as a whole percentage, e.g. ``"95%"``."""
    return f"{round(confidence * 100)}%"
