"""Selection tracking: validate the live selection and describe where it sits."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional

from draft_engine.buffer import (
    Buffer,
    BufferValidationError,
    RangeSelection,
    ensure_selection,
)
from draft_engine.runtime import telemetry
from draft_engine.runtime.config import EngineSettings, settings_from_env
from draft_engine.runtime.scheduler import DeferredScheduler

from .geometry import RangeMeasurer, Rect, resolve_bounding_rect

NAVIGATION_KEYS = frozenset({"left", "right", "up", "down", "home", "end"})

SnapshotListener = Callable[[Optional["SelectionSnapshot"]], None]


@dataclass(frozen=True, slots=True)
class SelectionSnapshot:
    """What was selected, and where, at one recomputation.

    ``document_start_offset``/``document_end_offset`` locate the first
    occurrence of ``text`` in document text and are ``None`` when the text
    could not be found verbatim.
    """

    text: str
    anchor_offset: int
    focus_offset: int
    anchor_key: int
    focus_key: int
    is_collapsed: bool = False
    document_start_offset: Optional[int] = None
    document_end_offset: Optional[int] = None
    rect: Optional[Rect] = None

    @property
    def is_located(self) -> bool:
        return self.document_start_offset is not None


def is_navigation_key(key: str) -> bool:
    """Arrows, Home and End, with or without modifiers (``shift+left``)."""

    base = key.rsplit("+", 1)[-1].strip().lower()
    return "arrow" in base or base in NAVIGATION_KEYS


def selection_rejection(
    buffer: Buffer,
    selection: Optional[RangeSelection],
    text: str,
    settings: EngineSettings,
    *,
    logger_name: Optional[str] = None,
) -> Optional[str]:
    """Return why ``selection`` is unusable, or ``None`` when it is usable."""

    if selection is None:
        return "no_selection"
    if not text.strip():
        return "blank"
    if selection.is_collapsed:
        return "collapsed"
    if len(text) > settings.max_selection_length:
        return "too_long"
    if any(marker in text for marker in settings.zero_width_markers):
        return "zero_width_marker"
    try:
        ensure_selection(buffer.document, selection)
    except BufferValidationError as exc:
        telemetry.record_event(
            "selection.invalid_offset",
            level="warning",
            data={
                "error": str(exc),
                "node": exc.key,
                "anchor": selection.anchor,
                "focus": selection.focus,
            },
            logger_name=logger_name,
        )
        return "stale_offsets"
    return None


class SelectionTracker:
    """Turns buffer selection changes into ``SelectionSnapshot`` values.

    Recomputes immediately on buffer selection notifications, and after
    ``pointer_up_delay_ms`` on pointer-up or navigation key-up, since hosts
    finalize those selections asynchronously. Listeners receive the snapshot
    (or ``None``) synchronously from the recomputation that produced it.
    """

    def __init__(
        self,
        buffer: Buffer,
        listener: Optional[SnapshotListener] = None,
        *,
        measurer: Optional[RangeMeasurer] = None,
        scheduler: Optional[DeferredScheduler] = None,
        settings: Optional[EngineSettings] = None,
        logger_name: str = "draft_engine.selection",
    ) -> None:
        self.buffer = buffer
        self.measurer = measurer
        self.scheduler = scheduler or DeferredScheduler()
        self.settings = settings or settings_from_env()
        self.logger_name = logger_name
        self._listeners: List[SnapshotListener] = [listener] if listener else []
        self._current: Optional[SelectionSnapshot] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def current(self) -> Optional[SelectionSnapshot]:
        return self._current

    @property
    def attached(self) -> bool:
        return self._unsubscribe is not None

    def attach(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.buffer.on_selection_change(
                lambda _selection: self.refresh()
            )

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.scheduler.cancel_label("selection.deferred")

    def add_listener(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def on_pointer_up(self) -> int:
        return self._defer()

    def on_key_up(self, key: str) -> Optional[int]:
        if not is_navigation_key(key):
            return None
        return self._defer()

    def refresh(self) -> Optional[SelectionSnapshot]:
        with telemetry.span(
            "selection::refresh",
            logger_name=self.logger_name,
            metadata={"buffer": self.buffer.name},
        ) as handle:
            snapshot = self._compute()
            handle.add_metadata("valid", snapshot is not None)
        self._current = snapshot
        self._emit(snapshot)
        return snapshot

    def consume(self) -> Optional[SelectionSnapshot]:
        """Hand the current snapshot to a revision request and forget it."""

        snapshot, self._current = self._current, None
        return snapshot

    def clear(self) -> None:
        self._current = None
        self._emit(None)

    def _defer(self) -> int:
        return self.scheduler.call_later(
            self.settings.pointer_up_delay_ms,
            self.refresh,
            label="selection.deferred",
        )

    def _compute(self) -> Optional[SelectionSnapshot]:
        buffer = self.buffer
        selection = buffer.selection
        text = buffer.selection_text() if selection is not None else ""
        reason = selection_rejection(
            buffer, selection, text, self.settings, logger_name=self.logger_name
        )
        if reason is not None or selection is None:
            telemetry.record_event(
                "selection.rejected",
                level="debug",
                data={"reason": reason},
                logger_name=self.logger_name,
            )
            return None

        document_text = buffer.text_content()
        start: Optional[int] = document_text.find(text)
        end: Optional[int] = None
        if start == -1:
            start = None
        else:
            end = min(start + len(text), len(document_text))

        rect = None
        offsets = buffer.selection_offsets()
        if offsets is not None:
            rect = resolve_bounding_rect(self.measurer, *offsets)

        return SelectionSnapshot(
            text=text,
            anchor_offset=selection.anchor.offset,
            focus_offset=selection.focus.offset,
            anchor_key=selection.anchor.key,
            focus_key=selection.focus.key,
            is_collapsed=selection.is_collapsed,
            document_start_offset=start,
            document_end_offset=end,
            rect=rect,
        )

    def _emit(self, snapshot: Optional[SelectionSnapshot]) -> None:
        for listener in list(self._listeners):
            listener(snapshot)


__all__ = [
    "SelectionSnapshot",
    "SelectionTracker",
    "is_navigation_key",
    "selection_rejection",
]
