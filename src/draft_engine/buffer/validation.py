"""Validation helpers shared across buffer services."""

from __future__ import annotations

from .document import BufferDocument
from .state import Point, RangeSelection
from .sync import BufferValidationError


def ensure_point(document: BufferDocument, point: Point) -> Point:
    if not document.has(point.key):
        raise BufferValidationError("Point references a missing node", key=point.key)
    node = document.get(point.key)
    if not node.is_text:
        raise BufferValidationError("Point must sit in a text leaf", key=point.key)
    if point.offset < 0 or point.offset > len(node.text):
        raise BufferValidationError(
            f"Offset {point.offset} exceeds node size {len(node.text)}",
            key=point.key,
        )
    return point


def ensure_selection(
    document: BufferDocument, selection: RangeSelection
) -> RangeSelection:
    ensure_point(document, selection.anchor)
    ensure_point(document, selection.focus)
    return selection
