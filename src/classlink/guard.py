"""Divergence guard: optimistic-concurrency check for mapped edits.

A descriptor's range is only trusted while the document still holds the
descriptor's snapshot value there. Anything else means the text changed
out-of-band (manual edit, external save) since the mapping was captured.
"""
from __future__ import annotations

from classlink.offsets import EditError, Err, Ok, Result, SourceRange


def check_range(
    text: str,
    span: SourceRange,
    expected: str,
    *,
    uid: int | None = None,
) -> Result[SourceRange, EditError]:
    """Confirm ``text[span]`` still equals ``expected``.

    Returns:
        ``Ok(span)`` when the bytes match, otherwise
        ``Err(EditError("source_diverged"))``. A range running past the end
        of ``text`` counts as diverged.
    """
    if span.end > len(text):
        return Err(EditError(
            reason="source_diverged",
            uid=uid,
            detail=f"range {span.start}:{span.end} exceeds document length {len(text)}",
        ))
    current = span.read(text)
    if current != expected:
        return Err(EditError(
            reason="source_diverged",
            uid=uid,
            detail=f"expected {expected!r} at {span.start}:{span.end}, found {current!r}",
        ))
    return Ok(span)
