"""Selection tracking and geometry."""

from .geometry import RangeMeasurer, Rect, resolve_bounding_rect
from .tracker import (
    SelectionSnapshot,
    SelectionTracker,
    is_navigation_key,
    selection_rejection,
)

__all__ = [
    "Rect",
    "RangeMeasurer",
    "resolve_bounding_rect",
    "SelectionSnapshot",
    "SelectionTracker",
    "is_navigation_key",
    "selection_rejection",
]
