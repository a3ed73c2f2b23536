"""Annotate HTML with stable element UIDs and class-value source ranges.

Two strategies produce the same descriptors:

- ``structural``: parse with BeautifulSoup (``html.parser``), which records
  the line/column of every start tag. Each tag is mapped back to its absolute
  offset and its start tag is lexed to find the ``class`` value span.
- ``tag_scan``: linear scan for start tags (``tag_scan.iter_start_tags``).
  Used when the parser raises, source positions are missing, or a located
  tag does not line up with the source text.

The renderable copy carries a marker attribute (``data-classlink-uid`` by
default) on every mapped element. Marker attributes already present in the
input are stripped first. The input text itself is never modified.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from bs4 import BeautifulSoup
from bs4.element import Tag

from classlink.offsets import ElementDescriptor, MappingTable
from classlink.tag_scan import (
    RAW_TEXT_TAGS,
    StartTag,
    compute_line_starts,
    iter_start_tags,
    lex_start_tag,
)

logger = logging.getLogger(__name__)

MARKER_ATTRIBUTE = "data-classlink-uid"
_RAW_TEXT_NAMES = sorted(RAW_TEXT_TAGS)

type AnnotationStrategy = Literal["structural", "tag_scan"]


class StructuralParseError(ValueError):
    """The parsed tree could not be mapped back onto the source text."""


@dataclass(frozen=True, slots=True)
class AnnotatedDocument:
    """Result of annotating one document snapshot."""

    source_text: str
    renderable_html: str
    table: MappingTable
    strategy: AnnotationStrategy


# ---------------------------------------------------------------------------
# Tag location
# ---------------------------------------------------------------------------


def structural_start_tags(text: str) -> list[StartTag]:
    """Locate every start tag via BeautifulSoup source positions.

    Tags nested inside a raw-text element (``<textarea>``, ``<title>``) are
    text to a browser and are skipped, as the tag scan skips them.

    Raises:
        StructuralParseError: if positions are unavailable or do not match
            the source text.
    """
    soup = BeautifulSoup(text, "html.parser")
    line_starts = compute_line_starts(text)
    tags: list[StartTag] = []
    for el in soup.find_all(True):
        if not isinstance(el, Tag):
            continue
        if el.find_parent(_RAW_TEXT_NAMES) is not None:
            continue
        if el.sourceline is None or el.sourcepos is None:
            raise StructuralParseError(f"no source position for <{el.name}>")
        line_idx = el.sourceline - 1
        if not 0 <= line_idx < len(line_starts):
            raise StructuralParseError(f"line {el.sourceline} out of range for <{el.name}>")
        offset = line_starts[line_idx] + el.sourcepos
        lexed = lex_start_tag(text, offset)
        if lexed is None or lexed.name != el.name.lower():
            raise StructuralParseError(
                f"<{el.name}> at line {el.sourceline} col {el.sourcepos} "
                "does not match source text"
            )
        tags.append(lexed)
    return tags


def scanned_start_tags(text: str) -> list[StartTag]:
    return list(iter_start_tags(text))


# ---------------------------------------------------------------------------
# Descriptor + renderable construction
# ---------------------------------------------------------------------------


def _class_value_range(tag: StartTag) -> tuple[int, int] | None:
    attr = tag.attribute("class")
    if attr is None or attr.value_start is None or attr.value_end is None:
        return None
    return attr.value_start, attr.value_end


def _strip_span(text: str, start: int) -> int:
    """Extend an attribute's start back over the whitespace preceding it."""
    while start > 0 and text[start - 1].isspace():
        start -= 1
    return start


def build_annotation(
    text: str,
    tags: list[StartTag],
    *,
    marker_attribute: str = MARKER_ATTRIBUTE,
    strategy: AnnotationStrategy = "structural",
) -> AnnotatedDocument:
    """Assign UIDs to class-bearing tags and build the renderable copy."""
    descriptors: list[ElementDescriptor] = []
    # (start, end, replacement) splices applied to a copy of the text
    splices: list[tuple[int, int, str]] = []
    uid = 0

    for tag in sorted(tags, key=lambda t: t.start):
        for marker in tag.attributes_named(marker_attribute):
            splices.append((_strip_span(text, marker.start), marker.end, ""))

        span = _class_value_range(tag)
        if span is None:
            continue
        value = text[span[0]:span[1]]
        if not value.strip():
            continue
        uid += 1
        descriptors.append(ElementDescriptor(
            uid=uid,
            range_start=span[0],
            range_end=span[1],
            last_known_value=value,
            tag_name=tag.name,
        ))
        splices.append((tag.insert_at, tag.insert_at, f' {marker_attribute}="{uid}"'))

    parts: list[str] = []
    last = 0
    for start, end, replacement in sorted(splices, key=lambda s: (s[0], s[1])):
        start = max(start, last)
        parts.append(text[last:start])
        parts.append(replacement)
        last = max(last, end)
    parts.append(text[last:])

    return AnnotatedDocument(
        source_text=text,
        renderable_html="".join(parts),
        table=MappingTable(descriptors),
        strategy=strategy,
    )


def annotate_html(
    text: str,
    *,
    marker_attribute: str = MARKER_ATTRIBUTE,
    strategy: AnnotationStrategy | None = None,
) -> AnnotatedDocument:
    """Annotate ``text``, preferring the structural strategy.

    Args:
        text: Full document text.
        marker_attribute: Attribute injected into the renderable copy.
        strategy: Force a strategy. ``None`` (default) tries ``structural``
            and falls back to ``tag_scan``.

    Returns:
        AnnotatedDocument with the renderable copy and the mapping table.
    """
    if strategy != "tag_scan":
        try:
            tags = structural_start_tags(text)
            return build_annotation(
                text, tags, marker_attribute=marker_attribute, strategy="structural",
            )
        except Exception as exc:
            if strategy == "structural":
                raise
            logger.debug("structural parse failed (%s); falling back to tag scan", exc)

    return build_annotation(
        text,
        scanned_start_tags(text),
        marker_attribute=marker_attribute,
        strategy="tag_scan",
    )
