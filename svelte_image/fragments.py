"""Attribute values built from generated derivatives."""

from __future__ import annotations

from typing import List, Sequence

from .errors import FragmentError
from .models import Derivative, OutputFormat


def _primary(derivatives: Sequence[Derivative]) -> List[Derivative]:
    return [d for d in derivatives if d.format is OutputFormat.PRIMARY]


def srcset_line(derivative: Derivative) -> str:
    return f"{derivative.output_url} {derivative.width}w"


def build_sizes(derivatives: Sequence[Derivative], breakpoints: Sequence[int]) -> str:
    """Build the ``sizes`` attribute.

    Only 1x primary derivatives take part. The first one has no media
    condition; the one at index ``i`` applies from ``breakpoints[i]``. Entries
    are emitted widest first so browsers match the largest min-width first.
    """
    queries: List[str] = []
    for index, derivative in enumerate(d for d in _primary(derivatives) if not d.is_retina):
        if index == 0:
            queries.append(f"{derivative.width}px")
            continue
        if index >= len(breakpoints):
            raise FragmentError(
                f"No breakpoint for size {derivative.width}px "
                f"({len(breakpoints)} breakpoint(s) configured)"
            )
        queries.append(f"(min-width: {breakpoints[index]}px) {derivative.width}px")
    return ", ".join(reversed(queries))


def build_srcset(derivatives: Sequence[Derivative]) -> str:
    """Comma-joined ``<url> <width>w`` entries, retina renditions included."""
    return ",".join(srcset_line(d) for d in _primary(derivatives))


def build_alternate_srcset(derivatives: Sequence[Derivative]) -> str:
    """Same as :func:`build_srcset` for the alternate-format renditions."""
    return ",".join(
        srcset_line(d) for d in derivatives if d.format is OutputFormat.ALTERNATE
    )


def format_percentage(value: float) -> str:
    text = repr(float(value))
    if text.endswith(".0"):
        text = text[:-2]
    return f"{text}%"


def build_ratio(derivatives: Sequence[Derivative]) -> str:
    """Aspect ratio of the first derivative as CSS padding percentage."""
    primary = _primary(derivatives)
    if not primary:
        raise FragmentError("Cannot compute a ratio without derivatives")
    first = primary[0]
    return format_percentage(first.height / first.width * 100)
