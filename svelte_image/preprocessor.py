"""High-level orchestration for rewriting image tags in component markup."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from .classifier import classify_node
from .config import ImageConfig, resolve_node_options
from .content import line_and_column, might_contain_images, parse_image_nodes
from .derivatives import generate_derivatives, image_paths, optimize_image
from .edits import EditOp, EditSession
from .errors import MarkupParseError, UnresolvableValueError
from .fragments import build_alternate_srcset, build_ratio, build_sizes, build_srcset
from .models import Attribute, Classification, SourceNode, TagKind
from .placeholders import make_placeholder

logger = logging.getLogger("svelte_image")


@dataclass
class RewriteStats:
    """Per-source counters reported by the CLI."""

    nodes: int = 0
    optimized: int = 0
    skipped: int = 0
    failed: int = 0
    parse_failed: bool = False


@dataclass
class RewriteResult:
    """Rewritten source text plus what happened to its image nodes."""

    code: str
    stats: RewriteStats = field(default_factory=RewriteStats)


def _attribute_edit(node: SourceNode, name: str, value: str) -> EditOp:
    """Replace ``name`` where it already sits, or append it to the tag."""
    text = f'{name}="{value}"'
    existing = node.attribute(name)
    if existing is not None:
        return EditOp(existing.start, existing.end, text)
    return EditOp.insertion(node.attributes_end, f" {text}")


def _value_edit(attr: Attribute, value: str) -> EditOp:
    if attr.value.quoted:
        return EditOp(attr.value.start, attr.value.end, value)
    return EditOp(attr.start, attr.end, f'{attr.name}="{value}"')


async def _component_edits(
    node: SourceNode,
    classification: Classification,
    config: ImageConfig,
) -> List[EditOp]:
    options = resolve_node_options(node, config)
    paths = image_paths(classification.source, config)
    derivative_set = await generate_derivatives(paths, options.sizes, config)
    placeholder = await asyncio.to_thread(
        make_placeholder, paths.in_path, options.placeholder, config
    )
    derivatives = derivative_set.derivatives

    edits = [
        _value_edit(node.attribute("src"), placeholder),
        _attribute_edit(node, "sizes", build_sizes(derivatives, options.breakpoints)),
        _attribute_edit(node, "srcset", build_srcset(derivatives)),
    ]
    if options.ratio:
        edits.append(_attribute_edit(node, "ratio", build_ratio(derivatives)))
    if config.webp:
        edits.append(
            _attribute_edit(node, "srcsetWebp", build_alternate_srcset(derivatives))
        )
    # Stable sort: appended attributes keep the order above.
    return sorted(edits, key=lambda edit: (edit.start, edit.end))


async def _raster_edits(
    node: SourceNode,
    classification: Classification,
    config: ImageConfig,
) -> List[EditOp]:
    paths = image_paths(classification.source, config)
    uri = await asyncio.to_thread(optimize_image, paths, config)
    return [_value_edit(node.attribute("src"), uri)]


def _describe(node: SourceNode, content: str) -> str:
    line, column = line_and_column(content, node.start)
    return f"<{node.name}> at {line}:{column}"


async def rewrite_markup(
    content: str,
    config: Optional[ImageConfig] = None,
    session: Optional[requests.Session] = None,
) -> RewriteResult:
    """Rewrite every eligible image node in ``content``.

    Nodes are processed one at a time in document order against a single
    edit session. A node that fails is logged and left exactly as authored.
    """
    config = config or ImageConfig()
    stats = RewriteStats()
    if not might_contain_images(content, config):
        return RewriteResult(content, stats)

    try:
        nodes = parse_image_nodes(content, config)
    except MarkupParseError as exc:
        logger.error("Error parsing component content: %s", exc)
        stats.parse_failed = True
        return RewriteResult(content, stats)

    if not nodes:
        return RewriteResult(content, stats)

    session = session or requests.Session()
    edit_session = EditSession(content)
    for node in nodes:
        stats.nodes += 1
        classification = await asyncio.to_thread(classify_node, node, config, session)
        if not classification.eligible:
            stats.skipped += 1
            level = logging.INFO if node.kind is TagKind.COMPONENT else logging.DEBUG
            logger.log(level, "Skipping %s: %s", _describe(node, content), classification.detail)
            continue

        try:
            if node.kind is TagKind.RASTER:
                edits = await _raster_edits(node, classification, config)
            else:
                edits = await _component_edits(node, classification, config)
        except UnresolvableValueError as exc:
            stats.skipped += 1
            logger.info("Skipping %s: %s", _describe(node, content), exc)
            continue
        except Exception:  # pylint: disable=broad-except
            stats.failed += 1
            logger.exception(
                "Failed to optimize %s (%s)", classification.source, _describe(node, content)
            )
            continue

        edit_session.apply(edits)
        stats.optimized += 1

    return RewriteResult(edit_session.content, stats)


async def replace_images(
    content: str,
    config: Optional[ImageConfig] = None,
    session: Optional[requests.Session] = None,
) -> str:
    """Return ``content`` with responsive attributes added to its images."""
    result = await rewrite_markup(content, config, session)
    return result.code


def optimize_markup(content: str, config: Optional[ImageConfig] = None) -> str:
    """Synchronous form of :func:`replace_images`."""
    return asyncio.run(replace_images(content, config))


@dataclass
class Preprocessor:
    """Markup preprocessor hook for component build pipelines."""

    config: ImageConfig

    async def markup(self, content: str, filename: Optional[str] = None) -> Dict[str, str]:
        if filename:
            logger.debug("Preprocessing %s", filename)
        return {"code": await replace_images(content, self.config)}


def get_preprocessor(config: Optional[ImageConfig] = None, **overrides: Any) -> Preprocessor:
    """Build a preprocessor from a config and/or option overrides.

    Overrides accept the same names as :class:`ImageConfig`, including the
    camelCase spellings used by the JavaScript preprocessor.
    """
    if overrides:
        base = dataclasses.asdict(config) if config else {}
        config = ImageConfig.from_mapping({**base, **overrides})
    return Preprocessor(config or ImageConfig())
