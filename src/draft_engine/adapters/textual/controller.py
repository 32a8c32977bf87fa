"""Textual-facing adapter that wires a RevisionSession into UI callbacks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from draft_engine.buffer import Buffer, BufferMirror, BufferValidationError
from draft_engine.revision import RevisionResult
from draft_engine.selection import Rect, is_navigation_key
from draft_engine.session import RevisionSession, SessionError


def _noop(*_args, **_kwargs) -> None:  # pragma: no cover - default hook
    return None


@dataclass(slots=True)
class EditorUIHooks:
    """Callbacks invoked by the adapter to update Textual widgets."""

    update_buffer: Callable[[BufferMirror], None]
    update_status: Callable[[str], None] = _noop
    show_affordance: Callable[[Optional[Rect]], None] = _noop
    show_proposal: Callable[[Optional[RevisionResult]], None] = _noop
    show_error: Callable[[str], None] = _noop
    handle_event: Callable[[str, object | None], None] = _noop
    log: Callable[[str], None] = _noop


def block_ranges(buffer: Buffer) -> List[Tuple[int, int]]:
    """``[start, end)`` document offsets of each text block, in order."""

    ranges: List[Tuple[int, int]] = []
    cursor = 0
    document = buffer.document
    for block in document.iter_text_blocks():
        length = len(document.block_text(block.key))
        ranges.append((cursor, cursor + length))
        cursor += length
    return ranges


class BlockLayoutMeasurer:
    """Measures ranges on a layout that renders one block per terminal row."""

    def __init__(self, buffer: Buffer) -> None:
        self.buffer = buffer

    def measure(self, start: int, end: int) -> Optional[Rect]:
        ranges = block_ranges(self.buffer)
        if not ranges:
            return None
        start_row, start_col = _locate(ranges, start, forward=True)
        if end <= start:
            return Rect(left=start_col, top=start_row, width=0, height=1)
        end_row, end_col = _locate(ranges, end, forward=False)
        if start_row == end_row:
            width = end_col - start_col
            return Rect(left=start_col, top=start_row, width=width, height=1)
        widest = max(block_end - block_start for block_start, block_end in ranges)
        return Rect(left=0, top=start_row, width=widest, height=end_row - start_row + 1)


def _locate(
    ranges: List[Tuple[int, int]], offset: int, *, forward: bool
) -> Tuple[int, int]:
    for row, (start, end) in enumerate(ranges):
        inside = start <= offset < end if forward else start < offset <= end
        if inside:
            return row, offset - start
    for row, (start, end) in enumerate(ranges):
        if start <= offset <= end:
            return row, offset - start
    last_start, last_end = ranges[-1]
    return len(ranges) - 1, last_end - last_start


def render_mirror(mirror: BufferMirror) -> str:
    """One line per block; ``[``/``]`` wrap the selection, ``|`` marks a caret."""

    if mirror.selection is None:
        return "\n".join(mirror.blocks)
    start, end = sorted(mirror.selection)
    lines: List[str] = []
    cursor = 0
    for index, block in enumerate(mirror.blocks):
        block_end = cursor + len(block)
        last = index == len(mirror.blocks) - 1
        if start == end:
            if cursor <= start < block_end or (start == block_end and last):
                cut = start - cursor
                block = block[:cut] + "|" + block[cut:]
        else:
            if cursor < end and start <= block_end:
                head = max(0, start - cursor)
                tail = min(len(block), end - cursor)
                opens = "[" if cursor <= start < block_end else ""
                closes = "]" if cursor < end <= block_end else ""
                block = block[:head] + opens + block[head:tail] + closes + block[tail:]
        lines.append(block)
        cursor = block_end
    return "\n".join(lines)


class TextualRevisionAdapter:
    """Bridges RevisionSession state and bus events to a Textual-friendly surface."""

    def __init__(self, session: RevisionSession, hooks: EditorUIHooks) -> None:
        self.session = session
        self.hooks = hooks
        self._subscribe_events()
        self._refresh_buffer()

    @property
    def buffer(self) -> Buffer:
        return self.session.buffer

    # -- BufferSync ----------------------------------------------------

    def pull_buffer(self) -> BufferMirror:
        return self.buffer.mirror(attributes={"phase": self.session.phase.value})

    def push_host_selection(self, anchor: int, focus: int) -> None:
        try:
            self.buffer.select_range(anchor, focus)
        except BufferValidationError as exc:
            self.hooks.update_status(f"selection::{exc}")
        self._refresh_buffer()

    # -- input ---------------------------------------------------------

    def handle_textual_key(self, key: str, *, modifiers: Iterable[str] = ()) -> bool:
        """Move or extend the selection on navigation keys, then track key-up."""

        normalized = tuple(str(mod).lower() for mod in modifiers)
        token = "+".join((*normalized, key)) if normalized else key
        self._log_state("key ->", key=token)
        if not is_navigation_key(token):
            return False
        extend = "shift" in token.lower().split("+")[:-1]
        base = token.rsplit("+", 1)[-1].lower().replace("arrow", "")
        try:
            self._move(base, extend=extend)
        except BufferValidationError as exc:
            self.hooks.update_status(f"selection::{exc}")
            return True
        self.session.tracker.on_key_up(token)
        self._refresh_buffer()
        return True

    def handle_pointer_up(self) -> None:
        self.session.tracker.on_pointer_up()

    def process_timeouts(self) -> int:
        """Run deferred callbacks whose deadline passed and refresh the view."""

        ran = self.session.scheduler.process_due()
        if ran:
            self._log_state("timeouts ->", ran=ran)
            self._refresh_buffer()
        return ran

    # -- revision workflow ---------------------------------------------

    def open_query(self) -> Optional[str]:
        try:
            text = self.session.open_query()
        except SessionError as exc:
            self.hooks.update_status(str(exc))
            return None
        self.hooks.show_affordance(None)
        self.hooks.update_status("query")
        return text

    async def submit_instruction(self, instruction: str) -> Optional[RevisionResult]:
        try:
            return await self.session.request_revision(instruction)
        except (SessionError, ValueError) as exc:
            self.hooks.update_status(str(exc))
            return None

    def accept(self, revised_text: Optional[str] = None) -> bool:
        try:
            return self.session.accept(revised_text)
        except SessionError as exc:
            self.hooks.update_status(str(exc))
            return False

    def reject(self) -> None:
        try:
            self.session.reject()
        except SessionError as exc:
            self.hooks.update_status(str(exc))

    def cancel(self) -> None:
        try:
            self.session.cancel()
        except SessionError as exc:
            self.hooks.update_status(str(exc))

    # -- internals -----------------------------------------------------

    def _move(self, key: str, *, extend: bool) -> None:
        buffer = self.buffer
        ranges = block_ranges(buffer)
        total = ranges[-1][1] if ranges else 0
        span = buffer.mirror().selection or (total, total)
        anchor, focus = span
        row = _locate(ranges, focus, forward=False)[0] if ranges else 0
        if key == "left":
            target = focus - 1
        elif key == "right":
            target = focus + 1
        elif key == "home":
            target = ranges[row][0] if ranges else 0
        elif key == "end":
            target = ranges[row][1] if ranges else 0
        elif key == "up":
            target = ranges[row - 1][0] if row > 0 else 0
        else:
            target = ranges[row + 1][1] if row + 1 < len(ranges) else total
        target = max(0, min(total, target))
        if extend:
            buffer.select_range(anchor, target)
        else:
            buffer.select_range(target, target)

    def _subscribe_events(self) -> None:
        bus = self.session.bus
        for event in (
            "selection.changed",
            "session.phase",
            "revision.query",
            "revision.proposed",
            "revision.accepted",
            "revision.error",
            "revision.rejected",
            "revision.cancelled",
            "revision.applied",
            "revision.unmatched",
        ):
            bus.subscribe(
                event, lambda payload, name=event: self._handle_event(name, payload)
            )

    def _handle_event(self, name: str, payload: object | None) -> None:
        self._log_state("event ->", event=name)
        self.hooks.handle_event(name, payload)
        if name == "selection.changed":
            rect = getattr(payload, "rect", None)
            self.hooks.show_affordance(rect if not self.session.busy else None)
        elif name == "revision.proposed" and isinstance(payload, RevisionResult):
            self.hooks.show_proposal(payload)
            self.hooks.update_status("proposal")
        elif name == "revision.error" and isinstance(payload, dict):
            self.hooks.show_error(str(payload.get("message", "Failed to revise text")))
        elif name in {"revision.rejected", "revision.cancelled"}:
            self.hooks.show_proposal(None)
            self.hooks.update_status(name.split(".", 1)[1])
        elif name == "revision.applied":
            self.hooks.show_proposal(None)
            self.hooks.update_status("Text revised successfully!")
            self._refresh_buffer()
        elif name == "revision.unmatched":
            self.hooks.show_proposal(None)
            self.hooks.show_error("Could not find the original text to replace")
            self._refresh_buffer()

    def _refresh_buffer(self) -> None:
        self.hooks.update_buffer(self.pull_buffer())

    def _log_state(self, prefix: str, **fields: object) -> None:
        snapshot = self._state_metadata()
        snapshot.update({k: v for k, v in fields.items() if v is not None})
        parts = [prefix]
        for key, value in snapshot.items():
            parts.append(f"{key}={value!r}")
        self.hooks.log(" ".join(parts))

    def _state_metadata(self) -> Dict[str, object]:
        buffer = self.buffer
        return {
            "phase": self.session.phase.value,
            "selection": buffer.selection_offsets(),
            "pending_timeouts": self.session.scheduler.pending,
            "buffer": buffer.name,
            "buffer_version": buffer.document.version,
        }


__all__ = [
    "BlockLayoutMeasurer",
    "EditorUIHooks",
    "TextualRevisionAdapter",
    "block_ranges",
    "render_mirror",
]
