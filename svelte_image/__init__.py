"""Build-time responsive image preprocessing for component markup."""

from .config import ImageConfig, TraceOptions, WebpOptions
from .edits import EditOp, EditSession, apply_edits
from .preprocessor import (
    Preprocessor,
    get_preprocessor,
    optimize_markup,
    replace_images,
    rewrite_markup,
)

__all__ = [
    "EditOp",
    "EditSession",
    "ImageConfig",
    "Preprocessor",
    "TraceOptions",
    "WebpOptions",
    "apply_edits",
    "get_preprocessor",
    "optimize_markup",
    "replace_images",
    "rewrite_markup",
]
