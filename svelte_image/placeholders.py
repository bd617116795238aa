"""Inline placeholder previews shown before the full image loads."""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import List, Optional

import potrace
from PIL import Image
from scour import scour

from .config import ImageConfig, TraceOptions
from .images import data_uri

logger = logging.getLogger("svelte_image")

BLUR_WIDTH = 64


def resize_to_width(image: Image.Image, width: int) -> Image.Image:
    """Resize keeping the aspect ratio; the height is never below one pixel."""
    if image.width == width:
        return image.copy()
    height = max(1, round(image.height * width / image.width))
    return image.resize((width, height), Image.Resampling.LANCZOS)


def blur_placeholder(path: Path) -> str:
    """Tiny PNG rendition of the image as a data URI."""
    with Image.open(path) as image:
        thumb = resize_to_width(image, BLUR_WIDTH)
    if thumb.mode not in ("RGB", "RGBA", "L", "LA"):
        thumb = thumb.convert("RGBA")
    buffer = io.BytesIO()
    thumb.save(buffer, format="PNG")
    return data_uri(buffer.getvalue(), "image/png")


def _number(value: float) -> str:
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return text or "0"


def _path_data(curves) -> str:
    parts: List[str] = []
    for curve in curves:
        start = curve.start_point
        parts.append(f"M{_number(start.x)},{_number(start.y)}")
        for segment in curve.segments:
            end = segment.end_point
            if segment.is_corner:
                corner = segment.c
                parts.append(
                    f"L{_number(corner.x)},{_number(corner.y)}"
                    f"L{_number(end.x)},{_number(end.y)}"
                )
            else:
                first, second = segment.c1, segment.c2
                parts.append(
                    f"C{_number(first.x)},{_number(first.y)} "
                    f"{_number(second.x)},{_number(second.y)} "
                    f"{_number(end.x)},{_number(end.y)}"
                )
        parts.append("z")
    return "".join(parts)


def trace_svg(path: Path, options: TraceOptions) -> str:
    """Posterized edge trace of the image as SVG markup."""
    with Image.open(path) as image:
        resized = resize_to_width(image, options.size)

    # Flatten transparency onto white so transparent areas are background.
    rgba = resized.convert("RGBA")
    flattened = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
    flattened.alpha_composite(rgba)
    gray = flattened.convert("L")
    mask = gray.point(lambda level: 0 if level < options.threshold else 255)

    bitmap = potrace.Bitmap(mask, blacklevel=0.5)
    curves = bitmap.trace(
        turdsize=2,
        turnpolicy=potrace.POTRACE_TURNPOLICY_MINORITY,
        alphamax=1.0,
        opticurve=False,
        opttolerance=0.2,
    )

    width, height = gray.size
    return (
        f'<svg xmlns="http://www.w3.org/2000/svg" version="1.1" '
        f'width="{width}" height="{height}" viewBox="0 0 {width} {height}">'
        f'<rect x="0" y="0" width="100%" height="100%" fill="{options.background}"/>'
        f'<path d="{_path_data(curves)}" stroke="none" fill="{options.color}" '
        f'fill-rule="evenodd"/>'
        "</svg>"
    )


def optimize_svg(svg: str) -> str:
    """Losslessly minify SVG markup with scour."""
    options = scour.sanitizeOptions()
    options.digits = 3
    options.strip_xml_prolog = True
    options.remove_metadata = True
    options.strip_comments = True
    options.strip_ids = True
    options.shorten_ids = True
    options.indent_type = "none"
    options.newlines = False
    return scour.scourString(svg, options)


def trace_placeholder(path: Path, options: TraceOptions) -> str:
    svg = optimize_svg(trace_svg(path, options))
    return data_uri(svg.encode("utf-8"), "image/svg+xml")


def make_placeholder(path: Path, mode: Optional[str], config: ImageConfig) -> str:
    """Build the placeholder selected by ``mode``; empty string when disabled."""
    if not mode:
        return ""
    if mode == "blur":
        uri = blur_placeholder(path)
    elif mode == "trace":
        uri = trace_placeholder(path, config.trace)
    else:
        raise ValueError(f"Unknown placeholder mode: {mode!r}")
    logger.debug("Built %s placeholder for %s (%d chars)", mode, path, len(uri))
    return uri
