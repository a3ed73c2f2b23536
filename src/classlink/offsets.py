"""Core value types for source-mapped class editing.

Every component that points at document text uses these types. All ranges
are half-open ``[start, end)`` indices into the full text of one document
(never relative to a tag or a line).

Type hierarchy:
  Ok[T] / Err[E]    : Strict algebraic Result type
  EditError         : Typed failure for mapped edits
  SourceRange       : Half-open text range
  ElementDescriptor : Tracked range + snapshot value for one class attribute
  MappingTable      : uid -> ElementDescriptor for one document snapshot
  CandidateMatch    : Rewrite candidate found during dynamic resolution
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Literal

# ---------------------------------------------------------------------------
# Result ADT
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class Ok[T]:
    """Success case of Result[T, E].

    Usage::

        result: Result[ElementDescriptor, EditError] = tracker.apply_edit(3, "flex")
        match result:
            case Ok(value=d): print(d.range_end)
            case Err(error=e): print(e.reason)
    """
    value: T


@dataclass(frozen=True, slots=True)
class Err[E]:
    """Failure case of Result[T, E]."""
    error: E


type Result[T, E] = Ok[T] | Err[E]


type EditErrorReason = Literal["unknown_uid", "source_diverged", "write_failed"]


@dataclass(frozen=True, slots=True)
class EditError:
    """Typed failure for a mapped edit.

    ``unknown_uid`` and ``source_diverged`` are recoverable by re-annotating
    the document; ``write_failed`` is surfaced as-is (no retry).
    """
    reason: EditErrorReason
    uid: int | None = None
    detail: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.reason, "uid": self.uid, "detail": self.detail}


# ---------------------------------------------------------------------------
# SourceRange
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class SourceRange:
    """Half-open range ``[start, end)`` in a document's text.

    Invariants (enforced in __post_init__):
        - start >= 0
        - end >= start
    """
    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0:
            raise ValueError(f"SourceRange.start must be >= 0, got {self.start}")
        if self.end < self.start:
            raise ValueError(
                f"SourceRange.end ({self.end}) must be >= start ({self.start})"
            )

    @property
    def length(self) -> int:
        return self.end - self.start

    def read(self, text: str) -> str:
        return text[self.start:self.end]

    def shifted(self, delta: int) -> SourceRange:
        return SourceRange(self.start + delta, self.end + delta)


# ---------------------------------------------------------------------------
# ElementDescriptor / MappingTable
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ElementDescriptor:
    """Tracked class-attribute value range for one element.

    ``last_known_value`` is the text that sat at ``[range_start, range_end)``
    when the descriptor was last written; the divergence guard compares
    against it before any edit.
    """
    uid: int
    range_start: int
    range_end: int
    last_known_value: str
    tag_name: str = ""

    def __post_init__(self) -> None:
        if self.uid < 1:
            raise ValueError(f"uid must be >= 1, got {self.uid}")
        if self.range_start < 0:
            raise ValueError(f"range_start must be >= 0, got {self.range_start}")
        if self.range_end < self.range_start:
            raise ValueError(
                f"range_end ({self.range_end}) must be >= range_start ({self.range_start})"
            )

    @property
    def range(self) -> SourceRange:
        return SourceRange(self.range_start, self.range_end)

    def shifted(self, delta: int) -> ElementDescriptor:
        return replace(
            self,
            range_start=self.range_start + delta,
            range_end=self.range_end + delta,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "uid": self.uid,
            "range_start": self.range_start,
            "range_end": self.range_end,
            "last_known_value": self.last_known_value,
            "tag_name": self.tag_name,
        }


class MappingTable:
    """Ordered ``uid -> ElementDescriptor`` map for one document snapshot.

    Descriptors are value objects; updates swap in a new descriptor for the
    same uid. Iteration is in ascending ``range_start`` order.
    """

    __slots__ = ("_by_uid",)

    def __init__(self, descriptors: Iterable[ElementDescriptor] = ()) -> None:
        self._by_uid: dict[int, ElementDescriptor] = {}
        for d in descriptors:
            if d.uid in self._by_uid:
                raise ValueError(f"duplicate uid {d.uid} in mapping table")
            self._by_uid[d.uid] = d

    def __len__(self) -> int:
        return len(self._by_uid)

    def __contains__(self, uid: object) -> bool:
        return uid in self._by_uid

    def __iter__(self) -> Iterator[ElementDescriptor]:
        return iter(sorted(self._by_uid.values(), key=lambda d: (d.range_start, d.uid)))

    def get(self, uid: int) -> ElementDescriptor | None:
        return self._by_uid.get(uid)

    def uids(self) -> list[int]:
        return [d.uid for d in self]

    def put(self, descriptor: ElementDescriptor) -> None:
        """Replace the descriptor stored for ``descriptor.uid``."""
        if descriptor.uid not in self._by_uid:
            raise KeyError(descriptor.uid)
        self._by_uid[descriptor.uid] = descriptor

    def shift_from(self, boundary: int, delta: int, *, exclude_uid: int) -> int:
        """Shift every descriptor starting at or after ``boundary`` by ``delta``.

        Returns the number of descriptors moved.
        """
        if delta == 0:
            return 0
        moved = 0
        for uid, d in self._by_uid.items():
            if uid != exclude_uid and d.range_start >= boundary:
                self._by_uid[uid] = d.shifted(delta)
                moved += 1
        return moved

    def to_dict(self) -> dict[str, Any]:
        return {
            "descriptor_count": len(self),
            "descriptors": [d.to_dict() for d in self],
        }


# ---------------------------------------------------------------------------
# CandidateMatch
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class CandidateMatch:
    """A range in some project file that a resolver pass proposes to rewrite.

    ``quality`` is in [0, 1]; earlier passes and better context score higher.
    ``replacement`` is the text that would be written over ``range``.
    """
    path: Path
    range: SourceRange
    quality: float
    pass_name: str
    replacement: str

    def __post_init__(self) -> None:
        if not 0.0 <= self.quality <= 1.0:
            raise ValueError(f"quality must be in [0.0, 1.0], got {self.quality}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "start": self.range.start,
            "end": self.range.end,
            "quality": round(self.quality, 4),
            "pass": self.pass_name,
        }
