"""Positional text edits expressed in original-buffer coordinates.

Every :class:`EditOp` refers to offsets in the text as it was before any edit
was applied. :class:`EditSession` owns the single running offset that maps
those coordinates onto the evolving buffer, so callers never compensate for
earlier edits themselves. Edits must arrive in ascending original position;
anything else is a programming error and raises :class:`EditOrderError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List

from .errors import EditOrderError


@dataclass(frozen=True)
class EditOp:
    """Replace original ``[start, end)`` with ``text``; ``start == end`` inserts."""

    start: int
    end: int
    text: str

    @classmethod
    def insertion(cls, position: int, text: str) -> "EditOp":
        return cls(position, position, text)

    @property
    def delta(self) -> int:
        return len(self.text) - (self.end - self.start)


class EditSession:
    """Single-writer buffer that folds edits in while tracking drift."""

    def __init__(self, content: str) -> None:
        self.original = content
        self.content = content
        self.offset = 0
        self._cursor = 0

    def replace_span(self, start: int, end: int, text: str) -> None:
        """Replace the original span ``[start, end)`` with ``text``."""
        if end < start:
            raise EditOrderError(f"Edit span ends before it starts: [{start}, {end})")
        if start < self._cursor:
            raise EditOrderError(
                f"Edit at original offset {start} precedes already edited offset {self._cursor}"
            )
        if end > len(self.original):
            raise EditOrderError(
                f"Edit span [{start}, {end}) exceeds the source length {len(self.original)}"
            )
        shifted_start = start + self.offset
        shifted_end = end + self.offset
        self.content = self.content[:shifted_start] + text + self.content[shifted_end:]
        self.offset += len(text) - (end - start)
        self._cursor = end

    def insert_after(self, position: int, text: str) -> None:
        """Insert ``text`` right after the first ``position`` original characters."""
        self.replace_span(position, position, text)

    def apply(self, edits: Iterable[EditOp]) -> None:
        """Apply one node's edits, which must be in ascending original order."""
        for edit in edits:
            self.replace_span(edit.start, edit.end, edit.text)


def apply_edits(content: str, edits: Iterable[EditOp]) -> str:
    """Apply declarative edits in any order; overlapping spans are rejected."""
    ordered: List[EditOp] = sorted(edits, key=lambda edit: (edit.start, edit.end))
    session = EditSession(content)
    session.apply(ordered)
    return session.content
