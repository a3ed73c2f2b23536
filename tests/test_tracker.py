"""Tests for classlink.tracker module."""
from typing import Any

from classlink.offsets import Err, Ok
from classlink.tracker import ReconciliationTracker

_DOC = '<div class="p-4 flex"><a class="link">x</a></div>'


def _store(text: str) -> dict[str, Any]:
    return {"text": text, "writes": 0}


def _tracker_on(store: dict[str, Any]) -> ReconciliationTracker:
    def reader() -> str:
        return store["text"]

    def writer(text: str) -> None:
        store["text"] = text
        store["writes"] += 1

    return ReconciliationTracker(store["text"], reader=reader, writer=writer)


class TestApplyEdit:
    def test_growing_edit_shifts_later_descriptors(self) -> None:
        tracker = ReconciliationTracker(_DOC)
        assert tracker.table.get(2).range_start == 32  # type: ignore[union-attr]

        result = tracker.apply_edit(1, "p-4 flex bg-red-500")
        assert isinstance(result, Ok)
        assert (result.value.range_start, result.value.range_end) == (12, 31)
        assert tracker.text == '<div class="p-4 flex bg-red-500"><a class="link">x</a></div>'

        link = tracker.table.get(2)
        assert link is not None
        assert (link.range_start, link.range_end) == (43, 47)
        assert tracker.value_of(2) == "link"
        assert tracker.check_consistency() == []

    def test_shrinking_edit(self) -> None:
        tracker = ReconciliationTracker(_DOC)
        assert isinstance(tracker.apply_edit(1, "p-4"), Ok)
        assert tracker.table.get(2).range_start == 27  # type: ignore[union-attr]
        assert tracker.value_of(2) == "link"

    def test_edit_does_not_move_earlier_descriptors(self) -> None:
        tracker = ReconciliationTracker(_DOC)
        assert isinstance(tracker.apply_edit(2, "link underline"), Ok)
        first = tracker.table.get(1)
        assert first is not None
        assert (first.range_start, first.range_end) == (12, 20)
        assert tracker.check_consistency() == []

    def test_successive_edits_stay_consistent(self) -> None:
        html = '<ul class="list">' + "".join(
            f'<li class="item-{i}">{i}</li>' for i in range(5)
        ) + "</ul>"
        tracker = ReconciliationTracker(html)
        for uid, value in [(4, "item-2 font-bold"), (1, "list space-y-2"), (6, "x"), (2, "")]:
            assert isinstance(tracker.apply_edit(uid, value), Ok)
            assert tracker.check_consistency() == []
        assert tracker.value_of(4) == "item-2 font-bold"
        assert tracker.value_of(6) == "x"
        assert tracker.value_of(2) == ""
        assert 'class=""' in tracker.text

    def test_empty_value_range_can_be_edited_again(self) -> None:
        tracker = ReconciliationTracker(_DOC)
        assert isinstance(tracker.apply_edit(1, ""), Ok)
        assert isinstance(tracker.apply_edit(1, "grid"), Ok)
        assert tracker.text.startswith('<div class="grid">')
        assert tracker.value_of(2) == "link"

    def test_unknown_uid(self) -> None:
        tracker = ReconciliationTracker(_DOC)
        result = tracker.apply_edit(42, "x")
        assert isinstance(result, Err)
        assert result.error.reason == "unknown_uid"
        assert result.error.uid == 42
        assert tracker.text == _DOC


class TestDivergence:
    def test_out_of_band_change_rejected(self) -> None:
        store = _store(_DOC)
        tracker = _tracker_on(store)
        store["text"] = store["text"].replace("p-4 flex", "p-6 flex")

        result = tracker.apply_edit(1, "p-8 flex")
        assert isinstance(result, Err)
        assert result.error.reason == "source_diverged"
        assert store["writes"] == 0
        assert store["text"] == _DOC.replace("p-4 flex", "p-6 flex")
        assert tracker.text == _DOC
        assert tracker.table.get(1).last_known_value == "p-4 flex"  # type: ignore[union-attr]

    def test_insertion_before_range_rejected(self) -> None:
        store = _store(_DOC)
        tracker = _tracker_on(store)
        store["text"] = "<!-- banner -->\n" + store["text"]
        result = tracker.apply_edit(2, "link active")
        assert isinstance(result, Err)
        assert result.error.reason == "source_diverged"

    def test_change_after_range_is_kept(self) -> None:
        store = _store(_DOC)
        tracker = _tracker_on(store)
        store["text"] = store["text"] + "\n<footer>f</footer>"
        assert isinstance(tracker.apply_edit(1, "p-2 flex"), Ok)
        assert store["text"].endswith("<footer>f</footer>")
        assert store["text"].startswith('<div class="p-2 flex">')
        assert tracker.text == store["text"]

    def test_unreadable_document_diverges(self) -> None:
        def reader() -> str:
            raise OSError("gone")

        tracker = ReconciliationTracker(_DOC, reader=reader)
        result = tracker.apply_edit(1, "flex")
        assert isinstance(result, Err)
        assert result.error.reason == "source_diverged"
        assert result.error.detail.startswith("cannot re-read document")


class TestWriteFailure:
    def test_failed_write_leaves_state_untouched(self) -> None:
        def writer(text: str) -> None:
            raise PermissionError("read-only")

        tracker = ReconciliationTracker(_DOC, writer=writer)
        result = tracker.apply_edit(1, "p-4 flex bg-red-500")
        assert isinstance(result, Err)
        assert result.error.reason == "write_failed"
        assert "read-only" in result.error.detail
        assert tracker.text == _DOC
        assert tracker.table.get(2).range_start == 32  # type: ignore[union-attr]
        assert tracker.check_consistency() == []


class TestReannotate:
    def test_reannotate_replaces_table(self) -> None:
        tracker = ReconciliationTracker(_DOC)
        annotated = tracker.reannotate('<p class="a">x</p><p class="b">y</p><p class="c">z</p>')
        assert tracker.table is annotated.table
        assert tracker.table.uids() == [1, 2, 3]
        assert tracker.value_of(3) == "c"

    def test_value_of_unknown_uid(self) -> None:
        assert ReconciliationTracker(_DOC).value_of(9) is None
