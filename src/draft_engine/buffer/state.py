"""Point, selection, and change tracking state for buffers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True, slots=True)
class Point:
    """Position inside a text leaf: node key plus local character offset."""

    key: int
    offset: int


@dataclass(frozen=True, slots=True)
class RangeSelection:
    """Anchor is where the selection started, focus where it currently ends."""

    anchor: Point
    focus: Point

    @property
    def is_collapsed(self) -> bool:
        return self.anchor == self.focus

    @classmethod
    def caret(cls, point: Point) -> "RangeSelection":
        return cls(anchor=point, focus=point)


@dataclass(slots=True)
class BufferState:
    """Mutable selection info tied to a BufferDocument version."""

    selection: Optional[RangeSelection] = None
    last_change_tick: int = 0

    def clear_selection(self) -> None:
        self.selection = None

    def set_selection(self, anchor: Point, focus: Point) -> None:
        self.selection = RangeSelection(anchor=anchor, focus=focus)
