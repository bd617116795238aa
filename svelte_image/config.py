"""Configuration objects and per-node option resolution."""

from __future__ import annotations

import ast
import dataclasses
import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

from .errors import ConfigError, UnresolvableValueError
from .models import Attribute, SourceNode, ValueKind

PLACEHOLDER_MODES = ("trace", "blur")

# Option names used by the original JavaScript preprocessor.
_CAMEL_CASE_ALIASES = {
    "optimizeAll": "optimize_all",
    "imgTagExtensions": "img_tag_extensions",
    "componentExtensions": "component_extensions",
    "inlineBelow": "inline_below",
    "compressionLevel": "compression_level",
    "tagName": "tag_name",
    "outputDir": "output_dir",
    "publicDir": "public_dir",
    "webpOptions": "webp_options",
    "optimizeRemote": "optimize_remote",
    "downloadTimeout": "download_timeout",
}

_LEADING_INT = re.compile(r"\s*(\d+)")


@dataclass(frozen=True)
class WebpOptions:
    """Encoder settings for the alternate WebP output."""

    quality: int = 75
    lossless: bool = False


@dataclass(frozen=True)
class TraceOptions:
    """Settings for the vector-trace placeholder."""

    background: str = "#fff"
    color: str = "#002fa7"
    threshold: int = 120
    size: int = 500


@dataclass(frozen=True)
class ImageConfig:
    """Top-level settings that control image discovery and generation."""

    optimize_all: bool = True
    img_tag_extensions: Tuple[str, ...] = ("jpg", "jpeg", "png")
    component_extensions: Tuple[str, ...] = ()
    inline_below: int = 10_000
    compression_level: int = 8
    quality: int = 70
    tag_name: str = "Image"
    sizes: Tuple[int, ...] = (400, 800, 1200)
    breakpoints: Tuple[int, ...] = (375, 768, 1024)
    output_dir: str = "g/"
    public_dir: Path = Path("./static/")
    placeholder: Optional[str] = "trace"
    webp: bool = True
    webp_options: WebpOptions = field(default_factory=WebpOptions)
    trace: TraceOptions = field(default_factory=TraceOptions)
    optimize_remote: bool = True
    ratio: bool = True
    retina: bool = True
    download_timeout: float = 15.0

    def __post_init__(self) -> None:
        # Accept the loose types callers tend to pass (lists, str paths, False).
        object.__setattr__(self, "img_tag_extensions", tuple(self.img_tag_extensions))
        object.__setattr__(self, "component_extensions", tuple(self.component_extensions))
        object.__setattr__(self, "sizes", tuple(int(s) for s in self.sizes))
        object.__setattr__(self, "breakpoints", tuple(int(b) for b in self.breakpoints))
        object.__setattr__(self, "public_dir", Path(self.public_dir))
        if self.placeholder is False or self.placeholder == "":
            object.__setattr__(self, "placeholder", None)

        if self.placeholder is not None and self.placeholder not in PLACEHOLDER_MODES:
            raise ConfigError(
                f"placeholder must be one of {', '.join(PLACEHOLDER_MODES)} or None, "
                f"got {self.placeholder!r}"
            )
        if not self.sizes or any(size <= 0 for size in self.sizes):
            raise ConfigError("sizes must contain at least one positive width")
        if not 1 <= self.quality <= 100:
            raise ConfigError(f"quality must be between 1 and 100, got {self.quality}")
        if not 0 <= self.compression_level <= 9:
            raise ConfigError(
                f"compression_level must be between 0 and 9, got {self.compression_level}"
            )
        if not self.tag_name:
            raise ConfigError("tag_name must not be empty")

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "ImageConfig":
        """Build a config from plain values, e.g. parsed JSON or keyword overrides."""
        known = {f.name for f in dataclasses.fields(cls)}
        kwargs = {}
        for key, value in values.items():
            name = _CAMEL_CASE_ALIASES.get(key, key)
            if name not in known:
                raise ConfigError(f"Unknown option: {key}")
            kwargs[name] = value

        if isinstance(kwargs.get("webp_options"), Mapping):
            kwargs["webp_options"] = _build_nested(WebpOptions, kwargs["webp_options"])
        if isinstance(kwargs.get("trace"), Mapping):
            kwargs["trace"] = _build_nested(TraceOptions, kwargs["trace"])
        return cls(**kwargs)

    def replace(self, **changes: Any) -> "ImageConfig":
        """Return a copy with the given fields changed."""
        return dataclasses.replace(self, **changes)


def _build_nested(cls, values: Mapping[str, Any]):
    known = {f.name for f in dataclasses.fields(cls)}
    # The JS encoder options carried a `force` flag with no meaning here.
    filtered = {k: v for k, v in values.items() if k != "force"}
    unknown = set(filtered) - known
    if unknown:
        raise ConfigError(f"Unknown {cls.__name__} option(s): {', '.join(sorted(unknown))}")
    return cls(**filtered)


@dataclass(frozen=True)
class NodeOptions:
    """Options in effect for one component node after attribute overrides."""

    sizes: Tuple[int, ...]
    breakpoints: Tuple[int, ...]
    placeholder: Optional[str]
    ratio: bool
    width: Optional[int] = None


def _attribute_literal(attr: Attribute) -> Any:
    value = attr.value
    if value.kind is ValueKind.BOOLEAN:
        return True
    if value.kind is ValueKind.TEXT:
        return value.raw
    try:
        return ast.literal_eval(value.raw.strip())
    except (ValueError, SyntaxError) as exc:
        raise UnresolvableValueError(
            f"Cannot resolve {attr.name}={{{value.raw}}} at build time"
        ) from exc


def _coerce_width(attr: Attribute) -> int:
    value = _attribute_literal(attr)
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        if match:
            return int(match.group(1))
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)
    raise UnresolvableValueError(f"Invalid width value: {attr.value.raw!r}")


def _coerce_int_list(attr: Attribute) -> Tuple[int, ...]:
    value = _attribute_literal(attr)
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as exc:
            raise UnresolvableValueError(
                f"Invalid {attr.name} value: {attr.value.raw!r}"
            ) from exc
    if not isinstance(value, (list, tuple)) or not value:
        raise UnresolvableValueError(f"{attr.name} must be a non-empty list of integers")
    try:
        return tuple(int(item) for item in value)
    except (TypeError, ValueError) as exc:
        raise UnresolvableValueError(
            f"{attr.name} must be a non-empty list of integers"
        ) from exc


def _coerce_placeholder(attr: Attribute) -> Optional[str]:
    value = _attribute_literal(attr)
    if value is True:
        return "trace"
    if value in (False, None, "", "false"):
        return None
    if value in PLACEHOLDER_MODES:
        return value
    raise UnresolvableValueError(f"Unknown placeholder mode: {value!r}")


def _coerce_flag(attr: Attribute) -> bool:
    value = _attribute_literal(attr)
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("", "true")


def resolve_node_options(node: SourceNode, config: ImageConfig) -> NodeOptions:
    """Merge a node's override attributes with the global configuration."""
    width_attr = node.attribute("width")
    width = _coerce_width(width_attr) if width_attr else None

    if width is not None:
        sizes: Tuple[int, ...] = (width,)
    else:
        sizes_attr = node.attribute("sizes")
        sizes = _coerce_int_list(sizes_attr) if sizes_attr else config.sizes

    breakpoints_attr = node.attribute("breakpoints")
    breakpoints = (
        _coerce_int_list(breakpoints_attr) if breakpoints_attr else config.breakpoints
    )

    placeholder_attr = node.attribute("placeholder")
    placeholder = (
        _coerce_placeholder(placeholder_attr) if placeholder_attr else config.placeholder
    )

    # An explicit width means the author controls layout.
    if width is not None:
        ratio = False
    else:
        ratio_attr = node.attribute("ratio")
        ratio = _coerce_flag(ratio_attr) if ratio_attr else config.ratio

    return NodeOptions(
        sizes=sizes,
        breakpoints=breakpoints,
        placeholder=placeholder,
        ratio=ratio,
        width=width,
    )
