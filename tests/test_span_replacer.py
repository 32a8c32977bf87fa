from typing import List, Optional

import pytest

from draft_engine.buffer import Buffer
from draft_engine.revision import (
    Mutation,
    PendingReplacement,
    ReplacementOutcome,
    SpanReplacer,
    leaf_scan,
    live_selection,
    selection_fallback,
)
from draft_engine.runtime.config import EngineSettings
from draft_engine.runtime.scheduler import DeferredScheduler
from draft_engine.selection import SelectionTracker


def make_replacer(
    buffer: Buffer, *, settings: Optional[EngineSettings] = None, strategies=None
) -> SpanReplacer:
    return SpanReplacer(
        buffer,
        scheduler=DeferredScheduler(),
        strategies=strategies,
        settings=settings or EngineSettings(),
    )


def leaf_texts(buffer: Buffer) -> List[str]:
    return [node.text for node in buffer.document.iter_text_nodes()]


def test_replacement_spanning_leaves_keeps_tree_shape() -> None:
    buffer = Buffer.from_blocks([["Hello ", "world", "!"]])
    keys_before = [leaf.key for leaf in buffer.document.leaf_table()]
    replacer = make_replacer(buffer)

    outcome = replacer.apply(PendingReplacement("lo wor", "LO-WOR"))

    assert outcome is not None and outcome.strategy == "leaf_scan"
    assert buffer.text_content() == "HelLO-WORld!"
    assert leaf_texts(buffer) == ["HelLO-WOR", "ld", "!"]
    assert [leaf.key for leaf in buffer.document.leaf_table()] == keys_before
    assert buffer.selection_offsets() == (9, 9)


def test_live_selection_replacement() -> None:
    buffer = Buffer.from_text("the quick fox")
    buffer.select_range(0, 13)
    replacer = make_replacer(buffer)

    outcome = replacer.apply(PendingReplacement("the quick fox", "a quick fox jumps"))

    assert outcome is not None and outcome.strategy == "live_selection"
    assert buffer.text_content() == "a quick fox jumps"
    assert buffer.selection_offsets() == (17, 17)


def test_live_selection_keeps_surrounding_text() -> None:
    buffer = Buffer.from_text("the quick fox jumps")
    buffer.select_range(0, 13)
    replacer = make_replacer(buffer)

    outcome = replacer.apply(PendingReplacement("the quick fox", "a quick fox"))

    assert outcome is not None and outcome.strategy == "live_selection"
    assert buffer.text_content() == "a quick fox jumps"
    assert buffer.selection_offsets() == (11, 11)


@pytest.mark.parametrize("allow_fallback", [False, True])
def test_missing_text_without_selection_is_a_noop(allow_fallback: bool) -> None:
    buffer = Buffer.from_text("the quick fox jumps")
    settings = EngineSettings(allow_selection_fallback=allow_fallback)
    replacer = make_replacer(buffer, settings=settings)
    completed: List[ReplacementOutcome] = []
    pending = PendingReplacement("lazy dog", "busy cat")

    outcome = replacer.apply(pending, completed.append)

    assert outcome is not None and not outcome.applied
    assert buffer.text_content() == "the quick fox jumps"
    assert buffer.selection is None
    replacer.scheduler.flush()
    assert completed == [outcome]


def test_live_selection_wins_over_first_occurrence() -> None:
    buffer = Buffer.from_text("ab ab")
    buffer.select_range(3, 5)
    replacer = make_replacer(buffer)

    outcome = replacer.apply(PendingReplacement("ab", "XY"))

    assert outcome is not None and outcome.strategy == "live_selection"
    assert buffer.text_content() == "ab XY"


def test_leaf_scan_used_when_selection_moved() -> None:
    buffer = Buffer.from_text("the quick fox")
    buffer.select_range(10, 13)
    replacer = make_replacer(buffer)

    outcome = replacer.apply(PendingReplacement("quick", "slow"))

    assert outcome is not None and outcome.strategy == "leaf_scan"
    assert buffer.text_content() == "the slow fox"


def test_second_apply_before_completion_is_dropped() -> None:
    buffer = Buffer.from_text("the quick fox")
    replacer = make_replacer(buffer)
    completed: List[ReplacementOutcome] = []
    pending = PendingReplacement("quick", "quick quick")

    first = replacer.apply(pending, completed.append)
    second = replacer.apply(pending, completed.append)

    assert first is not None
    assert second is None
    assert buffer.text_content() == "the quick quick fox"
    assert replacer.in_flight

    replacer.scheduler.flush()

    assert completed == [first]
    assert not replacer.in_flight


def test_guard_releases_after_completion_tick() -> None:
    buffer = Buffer.from_text("one two")
    replacer = make_replacer(buffer)
    replacer.apply(PendingReplacement("one", "1"))
    replacer.scheduler.flush()

    outcome = replacer.apply(PendingReplacement("two", "2"))

    assert outcome is not None and outcome.applied
    assert buffer.text_content() == "1 2"


def test_unmatched_text_leaves_buffer_and_still_completes() -> None:
    buffer = Buffer.from_text("the quick fox")
    buffer.select_range(4, 9)
    version = buffer.document.version
    replacer = make_replacer(buffer)
    completed: List[ReplacementOutcome] = []

    outcome = replacer.apply(PendingReplacement("slow", "fast"), completed.append)

    assert outcome is not None and not outcome.applied
    assert buffer.text_content() == "the quick fox"
    assert buffer.document.version == version
    assert not buffer.history.can_undo()
    assert replacer.scheduler.flush() == 1
    assert completed == [outcome]


def test_selection_fallback_is_opt_in() -> None:
    buffer = Buffer.from_text("the quick fox")
    buffer.select_range(4, 9)
    settings = EngineSettings(allow_selection_fallback=True)
    replacer = make_replacer(buffer, settings=settings)

    outcome = replacer.apply(PendingReplacement("slow", "fast"))

    assert outcome is not None and outcome.strategy == "selection_fallback"
    assert buffer.text_content() == "the fast fox"


def test_replacement_survives_leaf_split_after_capture() -> None:
    buffer = Buffer.from_text("Hello world")
    (leaf,) = buffer.document.leaf_table()
    buffer.document.split_text(leaf.key, 8)
    replacer = make_replacer(buffer)

    outcome = replacer.apply(PendingReplacement("world", "there"))

    assert outcome is not None and outcome.strategy == "leaf_scan"
    assert buffer.text_content() == "Hello there"
    assert leaf_texts(buffer) == ["Hello there", ""]


def test_revised_text_can_be_selected_again() -> None:
    buffer = Buffer.from_blocks([["Hello ", "world", "!"]])
    tracker = SelectionTracker(buffer, settings=EngineSettings())
    tracker.attach()
    replacer = make_replacer(buffer)

    replacer.apply(PendingReplacement("lo wor", "LO-WOR"))
    replacer.scheduler.flush()
    buffer.select_range(3, 9)

    assert tracker.current is not None
    assert tracker.current.text == "LO-WOR"


def test_replacement_is_one_undo_step() -> None:
    buffer = Buffer.from_blocks([["Hello ", "world", "!"]])
    replacer = make_replacer(buffer)

    replacer.apply(PendingReplacement("lo wor", "LO-WOR"))

    assert buffer.undo() is True
    assert buffer.text_content() == "Hello world!"
    assert leaf_texts(buffer) == ["Hello ", "world", "!"]


def test_failing_strategy_completes_as_unapplied() -> None:
    def explode(_buffer: Buffer, _original: str, _revised: str) -> Optional[Mutation]:
        raise RuntimeError("boom")

    buffer = Buffer.from_text("abc")
    replacer = make_replacer(buffer, strategies=[explode])
    completed: List[ReplacementOutcome] = []

    outcome = replacer.apply(PendingReplacement("abc", "xyz"), completed.append)

    assert outcome is not None and not outcome.applied
    assert buffer.text_content() == "abc"
    assert replacer.scheduler.flush() == 1
    assert completed == [outcome]
    assert not replacer.in_flight


def test_strategies_are_pure_planners() -> None:
    buffer = Buffer.from_text("the quick fox")
    buffer.select_range(4, 9)
    version = buffer.document.version

    assert live_selection(buffer, "quick", "slow") is not None
    assert live_selection(buffer, "fox", "dog") is None
    assert leaf_scan(buffer, "fox", "dog") is not None
    assert leaf_scan(buffer, "", "dog") is None
    mutation = selection_fallback(buffer, "fox", "dog")
    assert mutation is not None and mutation.replaced_text == "quick"
    assert buffer.document.version == version


def test_pending_replacement_requires_original_text() -> None:
    with pytest.raises(ValueError):
        PendingReplacement("", "anything")
