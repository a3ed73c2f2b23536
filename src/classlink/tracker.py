"""Reconciliation tracker: keeps a document's mapping table in step with edits.

The document text is an immutable buffer replaced wholesale on every edit;
descriptors are plain ranges into it, moved by the shift rule rather than
through live parser nodes:

    after replacing uid u's value (old end E, length delta d), every other
    descriptor with range_start >= E moves by d.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace

from classlink.annotator import MARKER_ATTRIBUTE, AnnotatedDocument, annotate_html
from classlink.guard import check_range
from classlink.offsets import EditError, ElementDescriptor, Err, MappingTable, Ok, Result

logger = logging.getLogger(__name__)

# Returns the document's current text (e.g. from disk or an editor buffer).
type DocumentReader = Callable[[], str]
# Persists the full new document text; raising OSError rejects the edit.
type DocumentWriter = Callable[[str], None]


class ReconciliationTracker:
    """Owns one document's text and mapping table.

    With a ``reader``, every edit re-reads the live document before the
    divergence check, so out-of-band changes are caught. Without one, the
    tracker's own copy of the text is the source of truth.

    Not safe for concurrent use: callers serialize edits per document
    (``PreviewSession`` does this with an ``asyncio.Lock``).
    """

    def __init__(
        self,
        text: str,
        *,
        marker_attribute: str = MARKER_ATTRIBUTE,
        reader: DocumentReader | None = None,
        writer: DocumentWriter | None = None,
    ) -> None:
        self._marker_attribute = marker_attribute
        self._reader = reader
        self._writer = writer
        self._text = text
        self._annotated = annotate_html(text, marker_attribute=marker_attribute)
        self._table = self._annotated.table

    @property
    def text(self) -> str:
        return self._text

    @property
    def table(self) -> MappingTable:
        return self._table

    @property
    def annotated(self) -> AnnotatedDocument:
        """Annotation of the text as it was last (re)annotated."""
        return self._annotated

    def reannotate(self, text: str) -> AnnotatedDocument:
        """Re-derive the mapping from ``text``; the previous table is discarded."""
        self._text = text
        self._annotated = annotate_html(text, marker_attribute=self._marker_attribute)
        self._table = self._annotated.table
        logger.debug(
            "reannotated document: %d descriptors (%s)",
            len(self._table), self._annotated.strategy,
        )
        return self._annotated

    def value_of(self, uid: int) -> str | None:
        """Current text under a descriptor's range (None for unknown uids)."""
        d = self._table.get(uid)
        if d is None:
            return None
        return d.range.read(self._text)

    def check_consistency(self) -> list[int]:
        """UIDs whose range no longer holds their ``last_known_value``."""
        return [
            d.uid for d in self._table
            if d.range.read(self._text) != d.last_known_value
        ]

    def apply_edit(self, uid: int, new_value: str) -> Result[ElementDescriptor, EditError]:
        """Replace one descriptor's value and shift downstream ranges.

        Either the edit completes (text, writer and table all updated) or the
        tracker is left exactly as it was.
        """
        d = self._table.get(uid)
        if d is None:
            return Err(EditError(reason="unknown_uid", uid=uid))

        current = self._text
        if self._reader is not None:
            try:
                current = self._reader()
            except (OSError, UnicodeDecodeError) as exc:
                return Err(EditError(
                    reason="source_diverged", uid=uid, detail=f"cannot re-read document: {exc}",
                ))

        match check_range(current, d.range, d.last_known_value, uid=uid):
            case Err() as diverged:
                logger.warning("edit to uid %d rejected: %s", uid, diverged.error.detail)
                return diverged
            case Ok():
                pass

        new_text = current[:d.range_start] + new_value + current[d.range_end:]
        if self._writer is not None:
            try:
                self._writer(new_text)
            except OSError as exc:
                logger.error("write for uid %d failed: %s", uid, exc)
                return Err(EditError(reason="write_failed", uid=uid, detail=str(exc)))

        delta = len(new_value) - len(d.last_known_value)
        old_end = d.range_end
        updated = replace(d, range_end=d.range_start + len(new_value), last_known_value=new_value)
        self._text = new_text
        self._table.put(updated)
        moved = self._table.shift_from(old_end, delta, exclude_uid=uid)
        logger.debug("uid %d edited (delta %+d, %d descriptors shifted)", uid, delta, moved)
        return Ok(updated)
