"""Data models used throughout the image preprocessor."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple


class TagKind(str, Enum):
    """Kinds of markup node that may reference an image."""

    RASTER = "raster"
    COMPONENT = "component"


class ValueKind(str, Enum):
    """How an attribute value was written in the source."""

    TEXT = "text"
    EXPRESSION = "expression"
    BOOLEAN = "boolean"


class OutputFormat(str, Enum):
    """Format tier of a generated derivative."""

    PRIMARY = "primary"
    ALTERNATE = "alternate"


@dataclass(frozen=True)
class AttributeValue:
    """Attribute value with the span of its text inside any quotes or braces."""

    kind: ValueKind
    raw: str
    start: int
    end: int
    quoted: bool = False

    @property
    def is_dynamic(self) -> bool:
        return self.kind is ValueKind.EXPRESSION


@dataclass(frozen=True)
class Attribute:
    """A single attribute of a start tag, spanning ``[start, end)``."""

    name: str
    value: AttributeValue
    start: int
    end: int


@dataclass(frozen=True)
class SourceNode:
    """Image-bearing start tag located in the original source text."""

    name: str
    kind: TagKind
    start: int
    close: int
    attributes_end: int
    attributes: Tuple[Attribute, ...] = ()

    def attribute(self, name: str) -> Optional[Attribute]:
        for attr in self.attributes:
            if attr.name == name:
                return attr
        return None


@dataclass(frozen=True)
class Classification:
    """Eligibility decision for one node."""

    eligible: bool
    reason: Optional[str] = None
    detail: Optional[str] = None
    resolved_path: Optional[Path] = None
    source: Optional[str] = None


@dataclass(frozen=True)
class ImageMetadata:
    """Natural dimensions of a source image."""

    width: int
    height: int
    format: Optional[str] = None


@dataclass(frozen=True)
class Derivative:
    """One generated output file for a source image."""

    width: int
    height: int
    is_retina: bool
    format: OutputFormat
    output_path: Path
    output_url: str
    skipped_because_cached: bool = False


@dataclass(frozen=True)
class DerivativeSet:
    """Derivatives produced for one image, in generation order."""

    metadata: ImageMetadata
    derivatives: Tuple[Derivative, ...] = field(default_factory=tuple)

    @property
    def primary(self) -> Tuple[Derivative, ...]:
        return tuple(d for d in self.derivatives if d.format is OutputFormat.PRIMARY)

    @property
    def alternate(self) -> Tuple[Derivative, ...]:
        return tuple(d for d in self.derivatives if d.format is OutputFormat.ALTERNATE)
