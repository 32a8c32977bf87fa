"""Screen-space rectangles for the floating revision affordance."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from draft_engine.runtime import telemetry


@dataclass(frozen=True, slots=True)
class Rect:
    left: float
    top: float
    width: float
    height: float

    @property
    def is_degenerate(self) -> bool:
        return self.width == 0 and self.height == 0

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height


class RangeMeasurer(Protocol):
    """Host hook returning the on-screen box of a document offset range."""

    def measure(self, start: int, end: int) -> Optional[Rect]:
        ...


def resolve_bounding_rect(
    measurer: Optional[RangeMeasurer], start: int, end: int
) -> Optional[Rect]:
    """Measure ``[start, end)``, re-measuring the collapsed end on a degenerate box."""

    if measurer is None:
        return None
    try:
        rect = measurer.measure(start, end)
        if rect is not None and rect.is_degenerate:
            collapsed = measurer.measure(end, end)
            if collapsed is not None and not collapsed.is_degenerate:
                rect = collapsed
    except (LookupError, ValueError, ArithmeticError) as exc:
        telemetry.record_event(
            "selection.rect_failed",
            level="error",
            data={"error": str(exc)},
            logger_name="draft_engine.selection",
        )
        return None
    if rect is None or rect.is_degenerate:
        return None
    return rect


__all__ = ["Rect", "RangeMeasurer", "resolve_bounding_rect"]
