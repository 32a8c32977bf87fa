"""Matching strategies that locate a captured span in the current buffer.

Each strategy is a pure planner: it inspects the buffer and returns a
``Mutation`` describing the leaf edits, or ``None`` when it cannot match.
The replacer applies the first mutation produced, in order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from draft_engine.buffer import (
    Buffer,
    BufferValidationError,
    Point,
    TextEdit,
    ensure_selection,
    plan_splice,
)


@dataclass(frozen=True, slots=True)
class Mutation:
    strategy: str
    edits: Tuple[TextEdit, ...]
    caret: Point
    # Selected text the mutation overwrites; differs from the original text
    # only for the selection fallback.
    replaced_text: str


Strategy = Callable[[Buffer, str, str], Optional[Mutation]]


def _selected_range(buffer: Buffer) -> Optional[Tuple[Point, Point]]:
    selection = buffer.selection
    if selection is None or selection.is_collapsed:
        return None
    try:
        return buffer.ordered_points(ensure_selection(buffer.document, selection))
    except BufferValidationError:
        return None


def _splice(
    buffer: Buffer, name: str, start: Point, end: Point, revised: str, replaced: str
) -> Mutation:
    return Mutation(
        strategy=name,
        edits=plan_splice(buffer.document, start, end, revised),
        caret=Point(start.key, start.offset + len(revised)),
        replaced_text=replaced,
    )


def live_selection(buffer: Buffer, original: str, revised: str) -> Optional[Mutation]:
    """The current selection still holds exactly the original text."""

    points = _selected_range(buffer)
    if points is None or buffer.selection_text() != original:
        return None
    return _splice(buffer, "live_selection", *points, revised, original)


def leaf_scan(buffer: Buffer, original: str, revised: str) -> Optional[Mutation]:
    """First occurrence of the original text across the concatenated leaves."""

    if not original:
        return None
    table = buffer.document.leaf_table()
    document_text = "".join(buffer.document.get(leaf.key).text for leaf in table)
    index = document_text.find(original)
    if index == -1:
        return None
    target_end = index + len(original)
    overlapping = [
        leaf for leaf in table if leaf.start < target_end and leaf.end > index
    ]
    if not overlapping:
        return None
    first, last = overlapping[0], overlapping[-1]
    start = Point(first.key, max(0, index - first.start))
    end = Point(last.key, min(last.end - last.start, target_end - last.start))
    return _splice(buffer, "leaf_scan", start, end, revised, original)


def selection_fallback(
    buffer: Buffer, original: str, revised: str
) -> Optional[Mutation]:
    """Overwrite whatever is selected, even if it no longer matches."""

    del original
    points = _selected_range(buffer)
    if points is None:
        return None
    return _splice(
        buffer, "selection_fallback", *points, revised, buffer.selection_text()
    )


DEFAULT_STRATEGIES: Tuple[Strategy, ...] = (live_selection, leaf_scan)


def default_strategies(*, allow_selection_fallback: bool = False) -> List[Strategy]:
    strategies: List[Strategy] = list(DEFAULT_STRATEGIES)
    if allow_selection_fallback:
        strategies.append(selection_fallback)
    return strategies


def plan(
    strategies: Sequence[Strategy], buffer: Buffer, original: str, revised: str
) -> Optional[Mutation]:
    for strategy in strategies:
        mutation = strategy(buffer, original, revised)
        if mutation is not None:
            return mutation
    return None


__all__ = [
    "Mutation",
    "Strategy",
    "DEFAULT_STRATEGIES",
    "default_strategies",
    "leaf_scan",
    "live_selection",
    "plan",
    "selection_fallback",
]
