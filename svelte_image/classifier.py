"""Eligibility rules deciding which image nodes get optimized."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional, Sequence

import requests

from .config import ImageConfig
from .images import download_image
from .models import Classification, SourceNode, TagKind

logger = logging.getLogger("svelte_image")

REASON_BLANK = "blank source"
REASON_DYNAMIC = "dynamic value"
REASON_EXTENSION = "unsupported extension"
REASON_EXTERNAL = "external source"
REASON_NOT_IMAGE = "not an image"
REASON_DOWNLOAD = "download failed"
REASON_MISSING = "file not found"

# Absolute URLs, optionally protocol-relative.
IS_EXTERNAL = re.compile(r"^(https?:)?//", re.IGNORECASE)
_LEADING_SLASH = re.compile(r"^/([^/])")


def has_allowed_extension(filename: str, extensions: Sequence[str]) -> bool:
    """True when ``filename`` ends in one of ``extensions``; empty allows all."""
    if not extensions:
        return True
    extension = filename.rsplit(".", 1)[-1].lower()
    return extension in {ext.lower() for ext in extensions}


def ineligible(reason: str, detail: Optional[str] = None) -> Classification:
    return Classification(eligible=False, reason=reason, detail=detail or reason)


def eligible(source: str, resolved_path: Path) -> Classification:
    return Classification(eligible=True, resolved_path=resolved_path, source=source)


def classify_node(
    node: SourceNode,
    config: ImageConfig,
    session: Optional[requests.Session] = None,
) -> Classification:
    """Decide whether ``node`` can be optimized and resolve its image file."""
    src = node.attribute("src")
    if src is None or (not src.value.is_dynamic and not src.value.raw.strip()):
        return ineligible(REASON_BLANK, "The `src` is blank")

    if src.value.is_dynamic:
        return ineligible(
            REASON_DYNAMIC, f"Cannot process a dynamic value: {{{src.value.raw}}}"
        )

    value = src.value.raw.strip()
    if node.kind is TagKind.RASTER and not has_allowed_extension(
        value, config.img_tag_extensions
    ):
        return ineligible(
            REASON_EXTENSION,
            f"The <img> tag was passed a file ({value}) whose extension is not one of "
            f"{', '.join(config.img_tag_extensions)}",
        )
    if node.kind is TagKind.COMPONENT and not has_allowed_extension(
        value, config.component_extensions
    ):
        return ineligible(
            REASON_EXTENSION,
            f"The {config.tag_name} component was passed a file ({value}) whose "
            f"extension is not one of {', '.join(config.component_extensions)}",
        )

    if IS_EXTERNAL.match(value):
        if not config.optimize_remote:
            return ineligible(REASON_EXTERNAL, f"The `src` is external: {value}")
        try:
            source = download_image(
                value,
                config.public_dir,
                session=session,
                timeout=config.download_timeout,
            )
        except (requests.RequestException, OSError) as exc:
            logger.warning("Failed to fetch image %s: %s", value, exc)
            return ineligible(REASON_DOWNLOAD, f"Could not download {value}: {exc}")
        except Exception as exc:  # pylint: disable=broad-except
            # Malformed URLs can fail inside urllib3 before requests wraps the error.
            logger.warning("Unexpected error fetching image %s: %r", value, exc)
            return ineligible(REASON_DOWNLOAD, f"Could not download {value}: {exc}")
        if source is None:
            return ineligible(REASON_NOT_IMAGE, f"The url is not an image: {value}")
    else:
        source = _LEADING_SLASH.sub(r"\1", value)

    full_path = (config.public_dir / source).resolve()
    if not full_path.is_file():
        return ineligible(REASON_MISSING, f"The image file does not exist: {full_path}")
    return eligible(source, full_path)
