"""Command-line entry point for the image preprocessor."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

import requests

from .config import ImageConfig
from .derivatives import generate_derivatives, image_paths
from .errors import ConfigError, DerivativeError
from .preprocessor import RewriteStats, rewrite_markup

logger = logging.getLogger("svelte_image.cli")

SOURCE_PATTERN = "*.svelte"


def _ensure_command_prefix(argv: Sequence[str], commands: Iterable[str]) -> Sequence[str]:
    if not argv:
        return argv
    first = argv[0]
    if first in commands or first.startswith("-"):
        return argv
    return ("rewrite", *argv)


def _int_list(value: str) -> Tuple[int, ...]:
    try:
        numbers = tuple(int(part.strip()) for part in value.split(",") if part.strip())
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Invalid list {value!r}. Example: 400,800,1200"
        ) from None
    if not numbers:
        raise argparse.ArgumentTypeError("Expected at least one number")
    return numbers


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--public-dir",
        default=Path("./static/"),
        type=Path,
        help="Directory that image sources are resolved against",
    )
    parser.add_argument(
        "--output-dir",
        default="g/",
        help="Directory under the public dir where derivatives are written",
    )
    parser.add_argument(
        "--sizes",
        type=_int_list,
        default=None,
        help="Comma-separated widths in pixels for the srcset (default: 400,800,1200)",
    )
    parser.add_argument(
        "--quality",
        type=int,
        default=70,
        help="JPEG quality level",
    )
    parser.add_argument(
        "--no-webp",
        action="store_true",
        help="Do not generate WebP renditions",
    )
    parser.add_argument(
        "--no-retina",
        action="store_true",
        help="Do not generate 2x renditions",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def _add_rewrite_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "paths",
        nargs="+",
        type=Path,
        help="Component files, or directories searched for *.svelte files",
    )
    destination = parser.add_mutually_exclusive_group()
    destination.add_argument(
        "--in-place",
        action="store_true",
        help="Overwrite the source files with the rewritten markup",
    )
    destination.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Directory where rewritten files should be written (default: stdout)",
    )
    parser.add_argument(
        "--tag-name",
        default="Image",
        help="Name of the responsive image component",
    )
    parser.add_argument(
        "--breakpoints",
        type=_int_list,
        default=None,
        help="Comma-separated min-width breakpoints matching --sizes (default: 375,768,1024)",
    )
    parser.add_argument(
        "--placeholder",
        choices=("trace", "blur", "none"),
        default="trace",
        help="Placeholder embedded as the component's src",
    )
    parser.add_argument(
        "--inline-below",
        type=int,
        default=10_000,
        help="Inline <img> files smaller than this many bytes as data URIs",
    )
    parser.add_argument(
        "--no-ratio",
        action="store_true",
        help="Do not add the ratio attribute",
    )
    parser.add_argument(
        "--no-remote",
        action="store_true",
        help="Leave images loaded from URLs untouched",
    )
    _add_common_arguments(parser)


def _add_derive_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "image",
        help="Image path relative to the public dir",
    )
    _add_common_arguments(parser)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Add responsive srcset/sizes attributes to image tags in component markup "
            "and generate the resized renditions they reference."
        ),
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    rewrite_parser = subparsers.add_parser(
        "rewrite", help="Rewrite image tags in component files"
    )
    _add_rewrite_arguments(rewrite_parser)

    derive_parser = subparsers.add_parser(
        "derive", help="Generate the responsive renditions of a single image"
    )
    _add_derive_arguments(derive_parser)

    argv = list(sys.argv[1:] if argv is None else argv)
    argv = list(_ensure_command_prefix(argv, subparsers.choices.keys()))
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> ImageConfig:
    """Translate parsed arguments into an :class:`ImageConfig`."""
    values = {
        "public_dir": args.public_dir,
        "output_dir": args.output_dir,
        "quality": args.quality,
        "webp": not args.no_webp,
        "retina": not args.no_retina,
    }
    if args.sizes:
        values["sizes"] = args.sizes
    if args.command == "rewrite":
        values.update(
            tag_name=args.tag_name,
            placeholder=None if args.placeholder == "none" else args.placeholder,
            inline_below=args.inline_below,
            ratio=not args.no_ratio,
            optimize_remote=not args.no_remote,
        )
        if args.breakpoints:
            values["breakpoints"] = args.breakpoints
    return ImageConfig(**values)


def collect_sources(paths: Sequence[Path]) -> List[Tuple[Path, Path]]:
    """Expand inputs into ``(source, path relative to its input)`` pairs."""
    sources: List[Tuple[Path, Path]] = []
    for path in paths:
        if path.is_dir():
            for source in sorted(path.rglob(SOURCE_PATTERN)):
                sources.append((source, source.relative_to(path)))
        elif path.is_file():
            sources.append((path, Path(path.name)))
        else:
            logger.warning("Skipping %s: no such file or directory", path)
    return sources


async def _rewrite_files(
    sources: Sequence[Tuple[Path, Path]],
    config: ImageConfig,
    in_place: bool,
    output: Optional[Path],
) -> RewriteStats:
    totals = RewriteStats()
    session = requests.Session()
    for source, relative in sources:
        try:
            text = source.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("Failed to read %s: %s", source, exc)
            totals.failed += 1
            continue
        result = await rewrite_markup(text, config, session)
        stats = result.stats

        if in_place:
            if result.code != text:
                source.write_text(result.code, encoding="utf-8")
        elif output is not None:
            destination = output / relative
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_text(result.code, encoding="utf-8")
        else:
            sys.stdout.write(result.code)

        logger.info(
            "Processed %s (%d optimized, %d skipped, %d failed)",
            source,
            stats.optimized,
            stats.skipped,
            stats.failed,
        )
        totals.nodes += stats.nodes
        totals.optimized += stats.optimized
        totals.skipped += stats.skipped
        totals.failed += stats.failed
    sys.stdout.flush()
    return totals


def _run_rewrite(args: argparse.Namespace, config: ImageConfig) -> int:
    sources = collect_sources(args.paths)
    if not sources:
        logger.error("No component files found")
        return 1

    overall_start = time.perf_counter()
    totals = asyncio.run(_rewrite_files(sources, config, args.in_place, args.output))
    total_elapsed = time.perf_counter() - overall_start
    logger.info(
        "Finished in %.2fs (%d file(s), %d/%d image(s) optimized, %d failed)",
        total_elapsed,
        len(sources),
        totals.optimized,
        totals.nodes,
        totals.failed,
    )
    return 0


def _run_derive(args: argparse.Namespace, config: ImageConfig) -> int:
    paths = image_paths(args.image.lstrip("/"), config)
    if not paths.in_path.is_file():
        logger.error("Image does not exist: %s", paths.in_path)
        return 1

    overall_start = time.perf_counter()
    try:
        derivative_set = asyncio.run(generate_derivatives(paths, config.sizes, config))
    except DerivativeError as exc:
        logger.error("%s", exc)
        return 1
    total_elapsed = time.perf_counter() - overall_start

    for derivative in derivative_set.derivatives:
        logger.info(
            "%s %dw%s%s",
            derivative.output_url,
            derivative.width,
            " (retina)" if derivative.is_retina else "",
            " (cached)" if derivative.skipped_because_cached else "",
        )
    logger.info(
        "Generated %d derivative(s) for %s in %.2fs",
        len(derivative_set.derivatives),
        args.image,
        total_elapsed,
    )
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,
    )

    try:
        config = build_config(args)
    except ConfigError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2

    if args.command == "rewrite":
        return _run_rewrite(args, config)
    return _run_derive(args, config)


if __name__ == "__main__":
    sys.exit(main())
