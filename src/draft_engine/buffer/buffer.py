"""High-level buffer façade combining document, selection state, and history."""

from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Callable, ContextManager, Iterable, List, Optional, Sequence, Tuple

from draft_engine.runtime import telemetry

from .document import BufferDocument, TextEdit
from .state import BufferState, Point, RangeSelection
from .sync import BufferMirror, BufferValidationError
from .undo import UndoEntry, UndoTimeline
from .validation import ensure_point, ensure_selection

SelectionListener = Callable[[Optional[RangeSelection]], None]


@dataclass(slots=True)
class BufferView:
    version: int
    text: str
    selection: Optional[RangeSelection]


@dataclass(slots=True)
class BufferDelta:
    version: int
    text: str
    selection: Optional[RangeSelection]
    label: str


class Buffer:
    def __init__(
        self,
        *,
        name: str = "default",
        document: Optional[BufferDocument] = None,
        state: Optional[BufferState] = None,
        history: Optional[UndoTimeline] = None,
    ) -> None:
        self.name = name
        self.document = document or BufferDocument.from_text("")
        self.state = state or BufferState()
        self.history = history or UndoTimeline()
        self._listeners: List[SelectionListener] = []
        self._active: Optional[Transaction] = None
        self._selection_dirty = False

    @classmethod
    def from_text(cls, text: str, *, name: str = "default") -> "Buffer":
        return cls(name=name, document=BufferDocument.from_text(text))

    @classmethod
    def from_blocks(
        cls, blocks: Iterable[Sequence[str]], *, name: str = "default"
    ) -> "Buffer":
        return cls(name=name, document=BufferDocument.from_blocks(blocks))

    # -- views ---------------------------------------------------------

    def text_content(self) -> str:
        return self.document.text_content()

    def snapshot(self) -> BufferView:
        return BufferView(
            version=self.document.version,
            text=self.text_content(),
            selection=self.state.selection,
        )

    def mirror(self, *, attributes: Optional[dict[str, str]] = None) -> BufferMirror:
        blocks = tuple(
            self.document.block_text(block.key)
            for block in self.document.iter_text_blocks()
        )
        return BufferMirror(
            text=self.text_content(),
            blocks=blocks,
            selection=self._selection_span(),
            version=self.document.version,
            attributes=dict(attributes or {}),
        )

    # -- transactions --------------------------------------------------

    def update(self, label: str) -> "Transaction":
        """Open a serialized update; nested calls join the outer transaction."""

        return Transaction(self, label)

    @property
    def in_update(self) -> bool:
        return self._active is not None

    # -- selection -----------------------------------------------------

    @property
    def selection(self) -> Optional[RangeSelection]:
        return self.state.selection

    def on_selection_change(self, listener: SelectionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_selection(self, anchor: Point, focus: Point) -> RangeSelection:
        ensure_point(self.document, anchor)
        ensure_point(self.document, focus)
        self.state.set_selection(anchor, focus)
        self._selection_changed()
        return RangeSelection(anchor=anchor, focus=focus)

    def select_range(self, anchor: int, focus: int) -> RangeSelection:
        """Select by document offsets; ``anchor > focus`` gives a backward selection."""

        if anchor == focus:
            point = self.document.point_at(anchor)
            return self.set_selection(point, point)
        start, end = sorted((anchor, focus))
        start_point = self.document.point_at(start, affinity="forward")
        end_point = self.document.point_at(end, affinity="backward")
        if anchor < focus:
            return self.set_selection(start_point, end_point)
        return self.set_selection(end_point, start_point)

    def clear_selection(self) -> None:
        if self.state.selection is None:
            return
        self.state.clear_selection()
        self._selection_changed()

    def point_offset(self, point: Point) -> Optional[int]:
        """Document offset of ``point``; ``None`` when its node is gone."""

        if not self.document.has(point.key) or not self.document.get(point.key).is_text:
            return None
        size = self.document.text_size(point.key)
        return self.document.offset_of(point.key) + max(0, min(point.offset, size))

    def selection_offsets(self) -> Optional[Tuple[int, int]]:
        """Ordered ``(start, end)`` document offsets of the selection."""

        span = self._selection_span()
        if span is None:
            return None
        return (min(span), max(span))

    def selection_text(self) -> str:
        offsets = self.selection_offsets()
        if offsets is None:
            return ""
        start, end = offsets
        return self.text_content()[start:end]

    # -- editing -------------------------------------------------------

    def insert_text(self, text: str) -> BufferDelta:
        """Replace the selected text (or insert at the caret) with ``text``."""

        selection = self.state.selection
        if selection is None:
            raise BufferValidationError("No selection to insert into")
        with self.update("insert_text"):
            start, end = self.ordered_points(ensure_selection(self.document, selection))
            self.document.apply_edits(plan_splice(self.document, start, end, text))
            caret = Point(start.key, start.offset + len(text))
            self.set_selection(caret, caret)
        return self._delta("insert_text")

    def remove_text(self) -> BufferDelta:
        return self.insert_text("")

    def ordered_points(self, selection: RangeSelection) -> Tuple[Point, Point]:
        anchor_at = self.point_offset(selection.anchor)
        focus_at = self.point_offset(selection.focus)
        if anchor_at is None or focus_at is None:
            raise BufferValidationError("Selection references a missing node")
        if (anchor_at, selection.anchor.key) <= (focus_at, selection.focus.key):
            return selection.anchor, selection.focus
        return selection.focus, selection.anchor

    def undo(self) -> bool:
        entry = self.history.undo()
        if entry is None:
            return False
        self._restore(entry.before, entry.selection_before)
        return True

    def redo(self) -> bool:
        entry = self.history.redo()
        if entry is None:
            return False
        self._restore(entry.after, entry.selection_after)
        return True

    # -- internals -----------------------------------------------------

    def _restore(
        self, document: BufferDocument, selection: Optional[RangeSelection]
    ) -> None:
        restored = document.copy()
        restored.version = self.document.version + 1
        self.document = restored
        self.state.selection = selection
        self.state.last_change_tick = restored.version
        self._selection_changed()

    def _selection_span(self) -> Optional[Tuple[int, int]]:
        selection = self.state.selection
        if selection is None:
            return None
        anchor = self.point_offset(selection.anchor)
        focus = self.point_offset(selection.focus)
        if anchor is None or focus is None:
            return None
        return (anchor, focus)

    def _selection_changed(self) -> None:
        if self._active is not None:
            self._selection_dirty = True
            return
        self._notify_selection()

    def _notify_selection(self) -> None:
        self._selection_dirty = False
        selection = self.state.selection
        for listener in list(self._listeners):
            listener(selection)

    def _delta(self, label: str) -> BufferDelta:
        return BufferDelta(
            version=self.document.version,
            text=self.text_content(),
            selection=self.state.selection,
            label=label,
        )


class Transaction(AbstractContextManager["Transaction"]):
    def __init__(self, buffer: Buffer, label: str) -> None:
        self.buffer = buffer
        self.label = label
        self.nested = False
        self._span_cm: Optional[ContextManager[object]] = None
        self._before: Optional[BufferDocument] = None
        self._selection_before: Optional[RangeSelection] = None

    def __enter__(self) -> "Transaction":
        if self.buffer._active is not None:
            self.nested = True
            return self
        self.buffer._active = self
        self._before = self.buffer.document.copy()
        self._selection_before = self.buffer.state.selection
        self._span_cm = telemetry.span(
            name=f"buffer::{self.label}",
            logger_name="draft_engine.buffer",
            component=True,
            metadata={"buffer": self.buffer.name},
        )
        self._span_cm.__enter__()
        return self

    @property
    def changed(self) -> bool:
        return (
            self._before is not None
            and self._before.version != self.buffer.document.version
        )

    def __exit__(self, exc_type, exc, tb) -> bool:
        if self.nested:
            return False
        buffer = self.buffer
        buffer._active = None
        try:
            if exc_type is None and self.changed and self._before is not None:
                buffer.history.push(
                    UndoEntry(
                        label=self.label,
                        before=self._before,
                        after=buffer.document.copy(),
                        selection_before=self._selection_before,
                        selection_after=buffer.state.selection,
                    )
                )
                buffer.state.last_change_tick = buffer.document.version
            if buffer._selection_dirty:
                buffer._notify_selection()
        finally:
            if self._span_cm is not None:
                self._span_cm.__exit__(exc_type, exc, tb)
        return False


def plan_splice(
    document: BufferDocument, start: Point, end: Point, text: str
) -> Tuple[TextEdit, ...]:
    """Edits replacing ``[start, end)`` with ``text`` without reshaping the tree.

    The first leaf keeps its prefix plus ``text``, the last keeps its suffix,
    and every leaf strictly between them is emptied.
    """

    first = document.get(start.key).text
    if start.key == end.key:
        spliced = first[: start.offset] + text + first[end.offset :]
        return (TextEdit(start.key, spliced),)
    keys = [leaf.key for leaf in document.leaf_table()]
    try:
        first_index, last_index = keys.index(start.key), keys.index(end.key)
    except ValueError as exc:
        raise BufferValidationError("Splice endpoints must be text leaves") from exc
    if first_index > last_index:
        raise BufferValidationError("Splice start must precede its end")
    last = document.get(end.key).text
    edits = [TextEdit(start.key, first[: start.offset] + text)]
    edits.extend(TextEdit(key, "") for key in keys[first_index + 1 : last_index])
    edits.append(TextEdit(end.key, last[end.offset :]))
    return tuple(edits)
