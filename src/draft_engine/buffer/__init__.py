"""Document tree, selection state, and update transactions."""

from .buffer import Buffer, BufferDelta, BufferView, Transaction, plan_splice
from .document import BufferDocument, LeafRange, Node, TextEdit
from .state import BufferState, Point, RangeSelection
from .sync import BufferMirror, BufferSync, BufferValidationError
from .undo import UndoEntry, UndoTimeline
from .validation import ensure_point, ensure_selection

__all__ = [
    "BufferDocument",
    "BufferState",
    "Node",
    "LeafRange",
    "TextEdit",
    "Point",
    "RangeSelection",
    "UndoTimeline",
    "UndoEntry",
    "Buffer",
    "BufferDelta",
    "BufferView",
    "Transaction",
    "BufferMirror",
    "BufferSync",
    "BufferValidationError",
    "ensure_point",
    "ensure_selection",
    "plan_splice",
]
