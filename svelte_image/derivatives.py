"""Responsive derivative generation for a single source image."""

from __future__ import annotations

import asyncio
import logging
import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple

from PIL import Image

from .config import ImageConfig, WebpOptions
from .errors import DerivativeError
from .images import file_data_uri
from .models import Derivative, DerivativeSet, ImageMetadata, OutputFormat
from .utils import ensure_directory, relative_to_root, to_url_path

logger = logging.getLogger("svelte_image")

ALTERNATE_SUFFIX = ".webp"


@dataclass(frozen=True)
class ImagePaths:
    """Input and output locations for one source image."""

    in_path: Path
    out_dir: Path
    out_path: Path
    out_url: str

    def sized(self, width: int, suffix: Optional[str] = None) -> Tuple[Path, str]:
        """Output path and URL of the ``width`` rendition, optionally re-suffixed."""
        filename = f"{self.in_path.stem}-{width}{suffix or self.in_path.suffix}"
        url = posixpath.join(posixpath.dirname(self.out_url), filename)
        return self.out_dir / filename, url


def image_paths(source: str, config: ImageConfig) -> ImagePaths:
    """Compute paths for ``source``, given relative to the public root."""
    public_dir = config.public_dir.resolve()
    in_path = (public_dir / source).resolve()
    out_dir = (public_dir / config.output_dir / source).resolve().parent
    out_path = out_dir / in_path.name
    out_url = to_url_path(relative_to_root(out_path, public_dir))
    return ImagePaths(in_path=in_path, out_dir=out_dir, out_path=out_path, out_url=out_url)


def read_metadata(path: Path) -> ImageMetadata:
    with Image.open(path) as image:
        return ImageMetadata(width=image.width, height=image.height, format=image.format)


def effective_widths(requested: Sequence[int], natural_width: int) -> List[int]:
    """Requested widths, or just the natural width when all of them exceed it."""
    if not requested:
        return [natural_width]
    if min(requested) > natural_width:
        return [natural_width]
    return list(requested)


def scaled_height(metadata: ImageMetadata, width: int) -> int:
    return max(1, round(metadata.height * width / metadata.width))


def plan_derivatives(
    paths: ImagePaths,
    widths: Sequence[int],
    metadata: ImageMetadata,
    config: ImageConfig,
) -> List[Derivative]:
    """Lay out every derivative to produce, in generation order.

    Each width yields its 1x entry followed by its 2x retina entry; each
    entry yields a primary output followed by the alternate-format output.
    Entries wider than the natural width are dropped.
    """
    planned: List[Derivative] = []
    for width in widths:
        tiers = [(width, False)]
        if config.retina:
            tiers.append((width * 2, True))
        for tier_width, is_retina in tiers:
            if tier_width > metadata.width:
                continue
            height = scaled_height(metadata, tier_width)
            formats = [(OutputFormat.PRIMARY, None)]
            if config.webp:
                formats.append((OutputFormat.ALTERNATE, ALTERNATE_SUFFIX))
            for output_format, suffix in formats:
                out_path, out_url = paths.sized(tier_width, suffix)
                planned.append(
                    Derivative(
                        width=tier_width,
                        height=height,
                        is_retina=is_retina,
                        format=output_format,
                        output_path=out_path,
                        output_url=out_url,
                        skipped_because_cached=out_path.exists(),
                    )
                )
    return planned


def _save_primary(
    image: Image.Image,
    path: Path,
    source_format: Optional[str],
    config: ImageConfig,
) -> None:
    image_format = (source_format or "").upper()
    if image_format == "JPEG":
        if image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
        image.save(path, format="JPEG", quality=config.quality, progressive=False)
    elif image_format == "PNG":
        image.save(path, format="PNG", compress_level=config.compression_level)
    elif image_format:
        image.save(path, format=image_format)
    else:
        image.save(path)


def _save_webp(image: Image.Image, path: Path, options: WebpOptions) -> None:
    if image.mode not in ("RGB", "RGBA"):
        image = image.convert("RGBA" if "A" in image.getbands() else "RGB")
    image.save(path, format="WEBP", quality=options.quality, lossless=options.lossless)


def encode_derivative(source: Path, derivative: Derivative, config: ImageConfig) -> Path:
    """Resize ``source`` and write one derivative file."""
    with Image.open(source) as image:
        source_format = image.format
        if image.width == derivative.width:
            resized = image.copy()
        else:
            resized = image.resize(
                (derivative.width, derivative.height), Image.Resampling.LANCZOS
            )
    if derivative.format is OutputFormat.ALTERNATE:
        _save_webp(resized, derivative.output_path, config.webp_options)
    else:
        _save_primary(resized, derivative.output_path, source_format, config)
    return derivative.output_path


async def generate_derivatives(
    paths: ImagePaths,
    requested: Sequence[int],
    config: ImageConfig,
) -> DerivativeSet:
    """Produce every derivative for ``paths.in_path``, skipping existing files.

    Encodes run concurrently in worker threads. A failed encode is logged and
    its derivative omitted; ``DerivativeError`` is raised when no primary
    derivative is left.
    """
    metadata = await asyncio.to_thread(read_metadata, paths.in_path)
    widths = effective_widths(requested, metadata.width)
    planned = plan_derivatives(paths, widths, metadata, config)
    ensure_directory(paths.out_dir.parts)

    # Retina widths can coincide with 1x widths; encode each file once.
    pending: Dict[Path, Derivative] = {}
    for derivative in planned:
        if derivative.skipped_because_cached:
            logger.debug("Reusing existing %s", derivative.output_path)
            continue
        pending.setdefault(derivative.output_path, derivative)

    targets = list(pending.values())
    results = await asyncio.gather(
        *(
            asyncio.to_thread(encode_derivative, paths.in_path, derivative, config)
            for derivative in targets
        ),
        return_exceptions=True,
    )

    failed: Set[Path] = set()
    for derivative, result in zip(targets, results):
        if isinstance(result, BaseException):
            logger.error("Failed to write %s: %s", derivative.output_path, result)
            failed.add(derivative.output_path)
        else:
            logger.debug("Wrote %s", result)

    kept = tuple(d for d in planned if d.output_path not in failed)
    if not any(d.format is OutputFormat.PRIMARY for d in kept):
        raise DerivativeError(f"No derivatives could be generated for {paths.in_path}")
    return DerivativeSet(metadata=metadata, derivatives=kept)


def optimize_image(paths: ImagePaths, config: ImageConfig) -> str:
    """Inline small images as data URIs, otherwise write one optimized copy.

    Returns the value to use as the tag's new ``src``.
    """
    size = paths.in_path.stat().st_size
    if config.inline_below and size < config.inline_below:
        return file_data_uri(paths.in_path)

    ensure_directory(paths.out_dir.parts)
    if paths.out_path.exists():
        logger.debug("Reusing existing %s", paths.out_path)
        return paths.out_url

    with Image.open(paths.in_path) as image:
        _save_primary(image, paths.out_path, image.format, config)
    logger.debug("Wrote %s", paths.out_path)
    return paths.out_url
