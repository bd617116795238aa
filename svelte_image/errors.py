"""Exception types raised by the image preprocessor."""

from __future__ import annotations


class SvelteImageError(Exception):
    """Base class for all preprocessor errors."""


class ConfigError(SvelteImageError, ValueError):
    """Raised when configuration values are invalid."""


class MarkupParseError(SvelteImageError):
    """Raised when component markup cannot be turned into image nodes."""


class UnresolvableValueError(SvelteImageError):
    """Raised when a per-node attribute value cannot be resolved at build time."""


class DerivativeError(SvelteImageError):
    """Raised when no usable derivative could be generated for an image."""


class FragmentError(SvelteImageError, ValueError):
    """Raised when attribute text cannot be built from derivatives."""


class EditOrderError(SvelteImageError):
    """Raised when edits are applied out of original-position order."""
