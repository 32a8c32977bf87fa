"""Deferred callbacks pumped by the host event loop."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from . import telemetry


@dataclass
class DeferredCall:
    deadline: float
    generation: int
    callback: Callable[[], None]
    label: str = ""


class DeferredScheduler:
    """Holds callbacks until their deadline; hosts call ``process_due`` on a timer.

    Callbacks run on the host's thread in deadline order (ties keep scheduling
    order). ``flush`` drains everything regardless of deadline, including calls
    scheduled by callbacks while flushing.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._pending: Dict[int, DeferredCall] = {}
        self._counter = 0

    @property
    def pending(self) -> int:
        return len(self._pending)

    def call_later(
        self, delay_ms: int, callback: Callable[[], None], *, label: str = ""
    ) -> int:
        self._counter += 1
        deadline = self._clock() + (max(0, delay_ms) / 1000.0)
        self._pending[self._counter] = DeferredCall(
            deadline=deadline,
            generation=self._counter,
            callback=callback,
            label=label,
        )
        return self._counter

    def call_soon(self, callback: Callable[[], None], *, label: str = "") -> int:
        return self.call_later(0, callback, label=label)

    def cancel(self, handle: int) -> bool:
        return self._pending.pop(handle, None) is not None

    def cancel_label(self, label: str) -> int:
        doomed = [key for key, call in self._pending.items() if call.label == label]
        for key in doomed:
            self._pending.pop(key, None)
        return len(doomed)

    def next_deadline(self) -> Optional[float]:
        if not self._pending:
            return None
        return min(call.deadline for call in self._pending.values())

    def process_due(self) -> int:
        now = self._clock()
        due = sorted(
            (call for call in self._pending.values() if call.deadline <= now),
            key=lambda call: (call.deadline, call.generation),
        )
        return sum(1 for call in due if self._run(call))

    def flush(self) -> int:
        ran = 0
        while self._pending:
            call = min(
                self._pending.values(),
                key=lambda item: (item.deadline, item.generation),
            )
            if self._run(call):
                ran += 1
        return ran

    def _run(self, call: DeferredCall) -> bool:
        if self._pending.pop(call.generation, None) is None:
            return False
        with telemetry.span(
            name=f"scheduler::{call.label or 'deferred'}",
            logger_name="draft_engine.runtime",
        ):
            call.callback()
        return True


__all__ = ["DeferredCall", "DeferredScheduler"]
