"""Markup parsing and image node extraction.

BeautifulSoup locates start tags in document order (ignoring anything inside
``<script>``/``<style>`` and comments); each located tag is then lexed
directly from the source text so that every attribute carries its exact
span in the original buffer.
"""

from __future__ import annotations

import bisect
import re
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup

from .config import ImageConfig
from .errors import MarkupParseError
from .models import Attribute, AttributeValue, SourceNode, TagKind, ValueKind

_WHITESPACE = " \t\n\r\f"
_TAG_NAME_END = _WHITESPACE + "/>"
_ATTR_NAME_END = _WHITESPACE + "=/>\"'"
_NEWLINE = re.compile(r"\n")


def _line_starts(text: str) -> List[int]:
    return [0] + [match.end() for match in _NEWLINE.finditer(text)]


def _skip_whitespace(text: str, pos: int) -> int:
    while pos < len(text) and text[pos] in _WHITESPACE:
        pos += 1
    return pos


def _skip_string(text: str, pos: int) -> int:
    """Return the index just past the JS string literal opening at ``pos``."""
    quote = text[pos]
    pos += 1
    while pos < len(text):
        char = text[pos]
        if char == "\\":
            pos += 2
            continue
        if char == quote:
            return pos + 1
        pos += 1
    raise MarkupParseError(f"Unterminated string literal in expression at offset {pos}")


def _skip_braces(text: str, pos: int) -> int:
    """Return the index just past the ``}`` matching the ``{`` at ``pos``."""
    opening = pos
    depth = 0
    while pos < len(text):
        char = text[pos]
        if char in "\"'`":
            pos = _skip_string(text, pos)
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return pos + 1
        pos += 1
    raise MarkupParseError(f"Unterminated expression starting at offset {opening}")


def _quoted_value(text: str, pos: int) -> Tuple[AttributeValue, int]:
    quote = text[pos]
    inner_start = pos + 1
    cursor = inner_start
    while cursor < len(text):
        char = text[cursor]
        if char == "{":
            cursor = _skip_braces(text, cursor)
            continue
        if char == quote:
            break
        cursor += 1
    else:
        raise MarkupParseError(f"Unterminated attribute value at offset {pos}")

    raw = text[inner_start:cursor]
    end = cursor + 1
    if raw.startswith("{") and _skip_braces(text, inner_start) == cursor:
        value = AttributeValue(
            ValueKind.EXPRESSION, raw[1:-1], inner_start + 1, cursor - 1, quoted=True
        )
    elif "{" in raw:
        value = AttributeValue(ValueKind.EXPRESSION, raw, inner_start, cursor, quoted=True)
    else:
        value = AttributeValue(ValueKind.TEXT, raw, inner_start, cursor, quoted=True)
    return value, end


def _unquoted_value(text: str, pos: int) -> Tuple[AttributeValue, int]:
    cursor = pos
    while (
        cursor < len(text)
        and text[cursor] not in _WHITESPACE
        and text[cursor] != ">"
        and not text.startswith("/>", cursor)
    ):
        cursor += 1
    if cursor == pos:
        raise MarkupParseError(f"Missing attribute value at offset {pos}")
    return AttributeValue(ValueKind.TEXT, text[pos:cursor], pos, cursor), cursor


def lex_start_tag(text: str, start: int) -> Tuple[str, Tuple[Attribute, ...], int, int]:
    """Lex the start tag at ``start``.

    Returns the tag name as written, its attributes, the offset right after
    the last attribute (or the name), and the offset of the closing ``>`` or
    ``/>``.
    """
    if not text.startswith("<", start):
        raise MarkupParseError(f"Expected a start tag at offset {start}")

    pos = start + 1
    while pos < len(text) and text[pos] not in _TAG_NAME_END:
        pos += 1
    name = text[start + 1 : pos]
    if not name:
        raise MarkupParseError(f"Start tag without a name at offset {start}")

    attributes: List[Attribute] = []
    attributes_end = pos
    while True:
        pos = _skip_whitespace(text, pos)
        if pos >= len(text):
            raise MarkupParseError(f"Unterminated <{name}> tag at offset {start}")
        char = text[pos]
        if char == ">" or text.startswith("/>", pos):
            return name, tuple(attributes), attributes_end, pos

        if char == "{":
            # Shorthand ({src}) or spread ({...props}) attribute.
            end = _skip_braces(text, pos)
            raw = text[pos + 1 : end - 1]
            value = AttributeValue(ValueKind.EXPRESSION, raw, pos + 1, end - 1)
            attributes.append(Attribute(raw.strip(), value, pos, end))
            pos = attributes_end = end
            continue

        attr_start = pos
        while pos < len(text) and text[pos] not in _ATTR_NAME_END:
            pos += 1
        if pos == attr_start:
            # Stray "/" or quote between attributes.
            pos += 1
            continue
        attr_name = text[attr_start:pos]
        name_end = pos

        lookahead = _skip_whitespace(text, pos)
        if lookahead < len(text) and text[lookahead] == "=":
            pos = _skip_whitespace(text, lookahead + 1)
            if pos >= len(text):
                raise MarkupParseError(f"Unterminated <{name}> tag at offset {start}")
            if text[pos] in "\"'":
                value, end = _quoted_value(text, pos)
            elif text[pos] == "{":
                end = _skip_braces(text, pos)
                value = AttributeValue(
                    ValueKind.EXPRESSION, text[pos + 1 : end - 1], pos + 1, end - 1
                )
            else:
                value, end = _unquoted_value(text, pos)
        else:
            value = AttributeValue(ValueKind.BOOLEAN, "", name_end, name_end)
            end = name_end

        attributes.append(Attribute(attr_name, value, attr_start, end))
        pos = attributes_end = end


def _tag_kind(name: str, config: ImageConfig) -> Optional[TagKind]:
    if name == "img":
        return TagKind.RASTER if config.optimize_all else None
    if name == config.tag_name:
        return TagKind.COMPONENT
    return None


def might_contain_images(content: str, config: ImageConfig) -> bool:
    """Cheap check used to skip parsing sources without candidate tags."""
    return "<img" in content or f"<{config.tag_name}" in content


def parse_image_nodes(content: str, config: ImageConfig) -> List[SourceNode]:
    """Return every image-bearing start tag in document order."""
    try:
        soup = BeautifulSoup(content, "html.parser")
    except Exception as exc:  # noqa: BLE001 - parser failures vary by input
        raise MarkupParseError(f"Could not parse markup: {exc}") from exc

    wanted = {"img", config.tag_name.lower()}
    line_starts = _line_starts(content)
    nodes: List[SourceNode] = []
    for tag in soup.find_all(True):
        if tag.name not in wanted or tag.sourceline is None:
            continue
        line_index = tag.sourceline - 1
        if line_index >= len(line_starts):
            raise MarkupParseError(f"Tag <{tag.name}> reported outside the source text")
        offset = line_starts[line_index] + tag.sourcepos
        name, attributes, attributes_end, close = lex_start_tag(content, offset)
        kind = _tag_kind(name, config)
        if kind is None:
            continue
        nodes.append(
            SourceNode(
                name=name,
                kind=kind,
                start=offset,
                close=close,
                attributes_end=attributes_end,
                attributes=attributes,
            )
        )
    return nodes


def line_and_column(content: str, offset: int) -> Tuple[int, int]:
    """1-based line and 0-based column of ``offset``, for log messages."""
    starts = _line_starts(content)
    index = bisect.bisect_right(starts, offset) - 1
    return index + 1, offset - starts[index]
