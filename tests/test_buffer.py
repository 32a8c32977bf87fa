from typing import List, Optional

import pytest

from draft_engine.buffer import (
    Buffer,
    BufferValidationError,
    Point,
    RangeSelection,
    plan_splice,
)


def make_buffer() -> Buffer:
    return Buffer.from_blocks([["Hello ", "world", "!"]], name="test")


def leaf_keys(buffer: Buffer) -> List[int]:
    return [leaf.key for leaf in buffer.document.leaf_table()]


def test_select_range_maps_offsets_and_reads_text() -> None:
    buffer = make_buffer()

    selection = buffer.select_range(3, 9)

    first, second, _ = leaf_keys(buffer)
    assert selection.anchor == Point(first, 3)
    assert selection.focus == Point(second, 3)
    assert buffer.selection_offsets() == (3, 9)
    assert buffer.selection_text() == "lo wor"


def test_backward_selection_keeps_direction_but_orders_offsets() -> None:
    buffer = make_buffer()

    buffer.select_range(9, 3)

    assert buffer.mirror().selection == (9, 3)
    assert buffer.selection_offsets() == (3, 9)
    start, end = buffer.ordered_points(buffer.selection)
    assert buffer.point_offset(start) == 3
    assert buffer.point_offset(end) == 9


def test_set_selection_rejects_stale_points() -> None:
    buffer = make_buffer()
    first = leaf_keys(buffer)[0]

    with pytest.raises(BufferValidationError):
        buffer.set_selection(Point(first, 0), Point(first, 40))
    with pytest.raises(BufferValidationError):
        buffer.set_selection(Point(404, 0), Point(first, 1))


def test_selection_listeners_fire_and_unsubscribe() -> None:
    buffer = make_buffer()
    seen: List[Optional[RangeSelection]] = []
    unsubscribe = buffer.on_selection_change(seen.append)

    buffer.select_range(0, 5)
    buffer.clear_selection()
    unsubscribe()
    buffer.select_range(0, 1)

    assert len(seen) == 2
    assert seen[-1] is None


def test_selection_notifications_wait_for_outer_transaction() -> None:
    buffer = make_buffer()
    seen: List[Optional[RangeSelection]] = []
    buffer.on_selection_change(seen.append)

    with buffer.update("outer"):
        buffer.select_range(0, 5)
        with buffer.update("inner"):
            buffer.select_range(0, 2)
        assert seen == []

    assert len(seen) == 1


def test_insert_text_replaces_selection_and_places_caret() -> None:
    buffer = make_buffer()
    buffer.select_range(3, 9)

    delta = buffer.insert_text("LO-WOR")

    assert delta.text == "HelLO-WORld!"
    assert buffer.selection is not None
    assert buffer.selection.is_collapsed
    assert buffer.selection_offsets() == (9, 9)


def test_transactions_record_undo_history() -> None:
    buffer = Buffer.from_text("abc")
    buffer.select_range(0, 3)
    buffer.insert_text("xyz")

    assert buffer.undo() is True
    assert buffer.text_content() == "abc"
    assert buffer.redo() is True
    assert buffer.text_content() == "xyz"
    assert buffer.redo() is False


def test_transaction_without_changes_skips_history() -> None:
    buffer = Buffer.from_text("abc")

    with buffer.update("noop"):
        buffer.select_range(0, 1)

    assert not buffer.history.can_undo()


def test_plan_splice_spanning_leaves_empties_the_middle() -> None:
    buffer = Buffer.from_blocks([["ab", "cd", "ef"]])
    first, middle, last = leaf_keys(buffer)

    edits = plan_splice(buffer.document, Point(first, 1), Point(last, 1), "X")

    assert [(edit.key, edit.text) for edit in edits] == [
        (first, "aX"),
        (middle, ""),
        (last, "f"),
    ]


def test_mirror_exposes_blocks_and_attributes() -> None:
    buffer = Buffer.from_text("one\n\ntwo")
    buffer.select_range(1, 4)

    mirror = buffer.mirror(attributes={"phase": "idle"})

    assert mirror.blocks == ("one", "two")
    assert mirror.text == "onetwo"
    assert mirror.selection == (1, 4)
    assert mirror.attributes == {"phase": "idle"}
