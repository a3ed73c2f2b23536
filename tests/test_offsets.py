"""Tests for classlink.offsets module."""
from pathlib import Path

import pytest

from classlink.offsets import (
    CandidateMatch,
    EditError,
    ElementDescriptor,
    Err,
    MappingTable,
    Ok,
    SourceRange,
)


class TestSourceRange:
    def test_negative_start_raises(self) -> None:
        with pytest.raises(ValueError):
            SourceRange(-1, 3)

    def test_end_before_start_raises(self) -> None:
        with pytest.raises(ValueError):
            SourceRange(5, 4)

    def test_read_and_length(self) -> None:
        span = SourceRange(2, 5)
        assert span.length == 3
        assert span.read("abcdefg") == "cde"

    def test_shifted(self) -> None:
        assert SourceRange(10, 18).shifted(11) == SourceRange(21, 29)

    def test_frozen(self) -> None:
        span = SourceRange(0, 1)
        with pytest.raises(AttributeError):
            span.start = 3  # type: ignore[misc]


class TestElementDescriptor:
    def test_uid_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            ElementDescriptor(uid=0, range_start=0, range_end=1, last_known_value="a")

    def test_range_property(self) -> None:
        d = ElementDescriptor(uid=1, range_start=10, range_end=18, last_known_value="p-4 flex")
        assert d.range == SourceRange(10, 18)

    def test_shifted_keeps_value(self) -> None:
        d = ElementDescriptor(uid=2, range_start=30, range_end=34, last_known_value="link")
        moved = d.shifted(-5)
        assert (moved.range_start, moved.range_end) == (25, 29)
        assert moved.last_known_value == "link"
        assert d.range_start == 30


class TestMappingTable:
    def _table(self) -> MappingTable:
        return MappingTable([
            ElementDescriptor(uid=2, range_start=40, range_end=44, last_known_value="b"),
            ElementDescriptor(uid=1, range_start=10, range_end=18, last_known_value="a"),
            ElementDescriptor(uid=3, range_start=60, range_end=61, last_known_value="c"),
        ])

    def test_iterates_by_range_start(self) -> None:
        assert self._table().uids() == [1, 2, 3]

    def test_duplicate_uid_rejected(self) -> None:
        d = ElementDescriptor(uid=1, range_start=0, range_end=1, last_known_value="a")
        with pytest.raises(ValueError):
            MappingTable([d, d])

    def test_get_and_contains(self) -> None:
        table = self._table()
        assert 2 in table
        assert 9 not in table
        assert table.get(9) is None
        assert len(table) == 3

    def test_put_unknown_uid_raises(self) -> None:
        table = self._table()
        with pytest.raises(KeyError):
            table.put(ElementDescriptor(uid=7, range_start=0, range_end=1, last_known_value="x"))

    def test_shift_from_boundary(self) -> None:
        table = self._table()
        moved = table.shift_from(18, 11, exclude_uid=1)
        assert moved == 2
        assert table.get(1).range_start == 10  # type: ignore[union-attr]
        assert table.get(2).range_start == 51  # type: ignore[union-attr]
        assert table.get(3).range_end == 72  # type: ignore[union-attr]

    def test_shift_zero_delta_is_noop(self) -> None:
        table = self._table()
        assert table.shift_from(0, 0, exclude_uid=1) == 0

    def test_to_dict_in_range_order(self) -> None:
        payload = self._table().to_dict()
        assert payload["descriptor_count"] == 3
        assert [row["uid"] for row in payload["descriptors"]] == [1, 2, 3]


class TestResult:
    def test_match_ok_and_err(self) -> None:
        def describe(result: Ok[int] | Err[EditError]) -> str:
            match result:
                case Ok(value=v):
                    return f"ok:{v}"
                case Err(error=e):
                    return f"err:{e.reason}"

        assert describe(Ok(3)) == "ok:3"
        assert describe(Err(EditError("unknown_uid", uid=4))) == "err:unknown_uid"

    def test_edit_error_payload(self) -> None:
        payload = EditError("source_diverged", uid=2, detail="changed").to_dict()
        assert payload == {"error": "source_diverged", "uid": 2, "detail": "changed"}


class TestCandidateMatch:
    def test_quality_bounds(self) -> None:
        with pytest.raises(ValueError):
            CandidateMatch(Path("a.js"), SourceRange(0, 1), 1.5, "exact_literal", "x")

    def test_to_dict(self) -> None:
        m = CandidateMatch(Path("a.js"), SourceRange(4, 9), 0.8, "tolerant_literal", "x")
        assert m.to_dict() == {
            "path": "a.js", "start": 4, "end": 9, "quality": 0.8, "pass": "tolerant_literal",
        }
