"""Start-tag lexing with absolute source offsets.

Both annotation strategies end up here: the structural strategy uses it to
read the attributes of a tag it has already located, the fallback strategy
uses ``iter_start_tags`` to find the tags in the first place.

Attribute value rules:
- quoted values exclude the quote characters;
- an unquoted value runs to the next whitespace, ``>`` or ``/>``;
- a quote that is never closed ends the value at the end of the tag.
"""
from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass

_TAG_NAME_RE = re.compile(r"<([A-Za-z][^\s/>]*)")
_TAG_OR_COMMENT_RE = re.compile(r"<(?:!--|[A-Za-z])")

# Elements whose bodies are raw text: tag-like sequences inside are not tags.
RAW_TEXT_TAGS = frozenset({"script", "style", "textarea", "title"})


@dataclass(frozen=True, slots=True)
class AttributeSpan:
    """One attribute of a start tag, with absolute offsets."""

    name: str                 # Lowercased attribute name
    start: int                # Offset of the first name character
    end: int                  # Offset after the value (and closing quote)
    value_start: int | None   # None for valueless attributes
    value_end: int | None
    quote: str                # '"', "'" or "" (unquoted / valueless)


@dataclass(frozen=True, slots=True)
class StartTag:
    """A lexed start tag ``<name attr=... >`` spanning ``[start, end)``."""

    name: str
    start: int
    end: int
    self_closing: bool
    attributes: tuple[AttributeSpan, ...]

    def attribute(self, name: str) -> AttributeSpan | None:
        """First attribute called ``name`` (duplicates after it are ignored)."""
        name = name.lower()
        for attr in self.attributes:
            if attr.name == name:
                return attr
        return None

    def attributes_named(self, name: str) -> list[AttributeSpan]:
        name = name.lower()
        return [a for a in self.attributes if a.name == name]

    @property
    def insert_at(self) -> int:
        """Offset where a new attribute can be inserted (before ``>`` / ``/>``)."""
        return self.end - (2 if self.self_closing else 1)


def compute_line_starts(text: str) -> list[int]:
    """Offsets of the first character of every line (``\\n`` separated)."""
    starts = [0]
    pos = text.find("\n")
    while pos != -1:
        starts.append(pos + 1)
        pos = text.find("\n", pos + 1)
    return starts


def _skip_space(text: str, pos: int) -> int:
    n = len(text)
    while pos < n and text[pos].isspace():
        pos += 1
    return pos


def lex_start_tag(text: str, start: int) -> StartTag | None:
    """Lex the start tag whose ``<`` is at ``start``.

    Returns None if ``start`` does not open a tag or the tag never closes.
    """
    m = _TAG_NAME_RE.match(text, start)
    if m is None:
        return None
    tag_name = m.group(1).lower()
    n = len(text)
    pos = m.end()
    attrs: list[AttributeSpan] = []

    while True:
        while pos < n and (text[pos].isspace() or (text[pos] == "/" and not text.startswith("/>", pos))):
            pos += 1
        if pos >= n:
            return None
        if text[pos] == ">":
            return StartTag(tag_name, start, pos + 1, False, tuple(attrs))
        if text.startswith("/>", pos):
            return StartTag(tag_name, start, pos + 2, True, tuple(attrs))

        name_start = pos
        while pos < n and not text[pos].isspace() and text[pos] not in "=>/":
            pos += 1
        if pos == name_start:
            # Stray '=' with no attribute name
            pos += 1
            continue
        attr_name = text[name_start:pos].lower()

        look = _skip_space(text, pos)
        if look >= n or text[look] != "=":
            attrs.append(AttributeSpan(attr_name, name_start, pos, None, None, ""))
            continue

        look = _skip_space(text, look + 1)
        if look >= n:
            return None
        if text[look] in "\"'":
            quote = text[look]
            value_start = look + 1
            close = text.find(quote, value_start)
            if close != -1:
                value_end = close
                pos = close + 1
            else:
                tag_close = text.find(">", value_start)
                if tag_close == -1:
                    return None
                value_end = tag_close
                pos = tag_close
            attrs.append(AttributeSpan(attr_name, name_start, pos, value_start, value_end, quote))
        else:
            value_start = look
            pos = look
            while pos < n and not text[pos].isspace() and text[pos] != ">" and not text.startswith("/>", pos):
                pos += 1
            attrs.append(AttributeSpan(attr_name, name_start, pos, value_start, pos, ""))


def _raw_text_close(text: str, tag_name: str, pos: int) -> int:
    """Offset of the ``</tag`` closing a raw-text element, or -1."""
    m = re.compile(rf"</{re.escape(tag_name)}\b", re.IGNORECASE).search(text, pos)
    return m.start() if m else -1


def iter_start_tags(text: str) -> Iterator[StartTag]:
    """Linear scan for start tags in document order.

    Skips comments and raw-text element bodies. Nesting is not tracked, so
    pathological markup is only approximately supported.
    """
    pos = 0
    while True:
        m = _TAG_OR_COMMENT_RE.search(text, pos)
        if m is None:
            return
        if m.group() == "<!--":
            end = text.find("-->", m.end())
            if end == -1:
                return
            pos = end + 3
            continue
        tag = lex_start_tag(text, m.start())
        if tag is None:
            pos = m.start() + 1
            continue
        yield tag
        pos = tag.end
        if tag.name in RAW_TEXT_TAGS and not tag.self_closing:
            close = _raw_text_close(text, tag.name, pos)
            if close == -1:
                return
            pos = close
