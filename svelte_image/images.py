"""Image downloading, type detection and data-URI helpers."""

from __future__ import annotations

import base64
import logging
import mimetypes
from pathlib import Path
from typing import Optional

import requests
from filetype import guess

from .utils import url_hash

logger = logging.getLogger("svelte_image")

MAX_IMAGE_BYTES = 10 * 1024 * 1024
ALLOWED_IMAGE_TYPES = {"png", "jpg", "jpeg", "gif", "webp", "bmp", "tiff", "avif"}


def detect_image_format(data: bytes) -> Optional[str]:
    """Detect image type using filetype; returns lowercase extension."""
    kind = guess(data)
    if kind and kind.mime.startswith("image/"):
        ext = kind.extension.lower()
        if ext == "jpeg":
            return "jpg"
        return ext
    return None


def infer_image_extension(content_type: Optional[str], data: bytes) -> Optional[str]:
    """Guess an image file extension from HTTP metadata or file signature."""
    detected = detect_image_format(data)
    if detected:
        return detected
    if not content_type:
        return None
    parts = content_type.split(";")[0].split("/")
    if len(parts) == 2 and parts[0].strip().lower() == "image":
        ext = parts[1].strip().lower()
        if ext == "jpeg":
            ext = "jpg"
        return ext
    return None


def find_cached_download(url: str, folder: Path) -> Optional[str]:
    """Return the filename of a previous download of ``url``, if any."""
    if not folder.is_dir():
        return None
    for existing in sorted(folder.glob(f"{url_hash(url)}.*")):
        if existing.is_file():
            return existing.name
    return None


def download_image(
    url: str,
    folder: Path,
    session: Optional[requests.Session] = None,
    timeout: float = 15.0,
) -> Optional[str]:
    """Download a remote image into ``folder`` keyed by a hash of its URL.

    Returns the stored filename, or ``None`` when the response is not an
    image. Network and filesystem errors propagate to the caller.
    """
    cached = find_cached_download(url, folder)
    if cached:
        logger.debug("Reusing downloaded image %s for %s", cached, url)
        return cached

    fetch_url = f"https:{url}" if url.startswith("//") else url
    session = session or requests.Session()
    resp = session.get(fetch_url, timeout=timeout)
    resp.raise_for_status()

    content_type = resp.headers.get("Content-Type", "")
    data = resp.content
    if len(data) > MAX_IMAGE_BYTES:
        logger.warning("Skipping %s: image larger than %s bytes", url, MAX_IMAGE_BYTES)
        return None

    extension = infer_image_extension(content_type, data)
    if not extension or extension not in ALLOWED_IMAGE_TYPES:
        logger.warning(
            "Skipping %s: unsupported image type (Content-Type=%s)",
            url,
            content_type,
        )
        return None

    folder.mkdir(parents=True, exist_ok=True)
    destination = folder / f"{url_hash(url)}.{extension}"
    destination.write_bytes(data)
    logger.info("Downloaded %s to %s", url, destination)
    return destination.name


def image_mime_type(data: bytes, path: Optional[Path] = None) -> str:
    """MIME type for image bytes, falling back to the file name."""
    kind = guess(data)
    if kind and kind.mime.startswith("image/"):
        return kind.mime
    if path is not None:
        guessed, _ = mimetypes.guess_type(path.name)
        if guessed:
            return guessed
    return "application/octet-stream"


def data_uri(data: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64," + base64.b64encode(data).decode("ascii")


def file_data_uri(path: Path) -> str:
    """Inline a file's bytes as a base64 data URI."""
    data = path.read_bytes()
    return data_uri(data, image_mime_type(data, path))
