"""Utility helpers for path handling and hashing."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import Sequence


def ensure_directory(segments: Sequence[str]) -> Path:
    """Create the directory made of ``segments`` if needed and return it."""
    if not segments:
        raise ValueError("ensure_directory() needs at least one path segment")
    directory = Path(*segments)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def url_hash(url: str) -> str:
    """Stable cache key for a remote image URL."""
    return hashlib.sha1(url.encode("utf-8")).hexdigest()


def to_url_path(path: str) -> str:
    """Convert an OS-specific relative path into a URL path."""
    return path.replace(os.sep, "/")


def relative_to_root(path: Path, root: Path) -> str:
    """Path of ``path`` relative to ``root`` even when it lies outside of it."""
    return os.path.relpath(path, root)
