"""Revision session: ties selection, the revision service, and replacement together."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Dict, FrozenSet, Optional, Sequence

from draft_engine.buffer import Buffer
from draft_engine.revision import (
    PendingReplacement,
    ReplacementOutcome,
    RevisionRequest,
    RevisionResult,
    RevisionService,
    RevisionServiceError,
    SpanReplacer,
    Strategy,
)
from draft_engine.runtime import telemetry
from draft_engine.runtime.config import EngineSettings, settings_from_env
from draft_engine.runtime.scheduler import DeferredScheduler
from draft_engine.selection import RangeMeasurer, SelectionSnapshot, SelectionTracker

from .bus import EventBus


class SessionPhase(str, Enum):
    IDLE = "idle"
    QUERYING = "querying"
    REQUESTING = "requesting"
    PROPOSAL_SHOWN = "proposal_shown"
    APPLYING = "applying"


TRANSITIONS: Dict[SessionPhase, FrozenSet[SessionPhase]] = {
    SessionPhase.IDLE: frozenset({SessionPhase.QUERYING}),
    SessionPhase.QUERYING: frozenset({SessionPhase.REQUESTING, SessionPhase.IDLE}),
    SessionPhase.REQUESTING: frozenset(
        {SessionPhase.PROPOSAL_SHOWN, SessionPhase.IDLE}
    ),
    SessionPhase.PROPOSAL_SHOWN: frozenset({SessionPhase.APPLYING, SessionPhase.IDLE}),
    SessionPhase.APPLYING: frozenset({SessionPhase.IDLE}),
}


class SessionError(RuntimeError):
    """Base class for misuse of a revision session."""


class InvalidTransitionError(SessionError):
    def __init__(self, current: SessionPhase, target: SessionPhase) -> None:
        super().__init__(f"Cannot move from '{current.value}' to '{target.value}'")
        self.current = current
        self.target = target


class NoSelectionError(SessionError):
    """Raised when a query is opened without a usable selection."""


class RevisionSession:
    """Owns one editor's revision workflow.

    Phases run ``idle -> querying -> requesting -> proposal_shown ->
    applying -> idle``; closing a dialog returns to ``idle`` from any phase
    before ``applying`` without touching the buffer.
    """

    def __init__(
        self,
        buffer: Buffer,
        service: RevisionService,
        *,
        bus: Optional[EventBus] = None,
        scheduler: Optional[DeferredScheduler] = None,
        measurer: Optional[RangeMeasurer] = None,
        settings: Optional[EngineSettings] = None,
        strategies: Optional[Sequence[Strategy]] = None,
    ) -> None:
        self.buffer = buffer
        self.service = service
        self.bus = bus or EventBus()
        self.settings = settings or settings_from_env()
        self.scheduler = scheduler or DeferredScheduler()
        self.tracker = SelectionTracker(
            buffer,
            self._on_selection,
            measurer=measurer,
            scheduler=self.scheduler,
            settings=self.settings,
        )
        self.tracker.attach()
        self.replacer = SpanReplacer(
            buffer,
            scheduler=self.scheduler,
            strategies=strategies,
            settings=self.settings,
        )
        self._phase = SessionPhase.IDLE
        self.query_text: Optional[str] = None
        self.proposal: Optional[RevisionResult] = None
        self.pending: Optional[PendingReplacement] = None
        self.last_error: Optional[str] = None
        self.last_outcome: Optional[ReplacementOutcome] = None
        self._generation = 0

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def busy(self) -> bool:
        return self._phase in {SessionPhase.REQUESTING, SessionPhase.APPLYING}

    @property
    def selection(self) -> Optional[SelectionSnapshot]:
        return self.tracker.current

    def open_query(self) -> str:
        """Capture the current selection as the text to revise."""

        self._check(SessionPhase.QUERYING)
        snapshot = self.tracker.current
        if snapshot is None:
            raise NoSelectionError("No usable selection to revise")
        self.tracker.consume()
        self.query_text = snapshot.text
        self.last_error = None
        self._transition(SessionPhase.QUERYING)
        self.bus.emit("revision.query", snapshot)
        return snapshot.text

    async def request_revision(self, instruction: str) -> Optional[RevisionResult]:
        """Ask the service for a proposal; returns ``None`` on service failure."""

        self._check(SessionPhase.REQUESTING)
        if not instruction.strip():
            raise ValueError("instruction cannot be blank")
        request = RevisionRequest(
            selected_text=self.query_text or "", instruction=instruction.strip()
        )
        self._transition(SessionPhase.REQUESTING)
        self._generation += 1
        generation = self._generation
        try:
            result = await self.service.revise(request)
        except RevisionServiceError as exc:
            if generation != self._generation:
                return None
            self.last_error = str(exc)
            self._reset()
            telemetry.record_event(
                "session.service_error",
                level="error",
                data={"error": str(exc), "status": exc.status},
                logger_name="draft_engine.session",
            )
            self.bus.emit("revision.error", {"message": str(exc), "status": exc.status})
            return None
        except asyncio.CancelledError:
            if generation == self._generation:
                self._reset()
            raise

        if generation != self._generation:
            telemetry.record_event(
                "session.stale_proposal",
                data={"phase": self._phase.value},
                logger_name="draft_engine.session",
            )
            return None
        self.proposal = result
        self._transition(SessionPhase.PROPOSAL_SHOWN)
        self.bus.emit("revision.proposed", result)
        return result

    def accept(self, revised_text: Optional[str] = None) -> bool:
        """Apply the proposal, or ``revised_text`` when the user edited it."""

        if self._phase is SessionPhase.APPLYING or self.replacer.in_flight:
            telemetry.record_event(
                "session.duplicate_accept",
                logger_name="draft_engine.session",
            )
            return False
        self._check(SessionPhase.APPLYING)
        if self.proposal is None:
            raise SessionError("No proposal to accept")
        text = self.proposal.revised_text if revised_text is None else revised_text
        pending = PendingReplacement(
            original_text=self.query_text or self.proposal.original_text,
            revised_text=text,
        )
        self.pending = pending
        self._transition(SessionPhase.APPLYING)
        self.bus.emit("revision.accepted", pending)
        self.replacer.apply(pending, self._on_replacement_complete)
        return True

    def reject(self) -> None:
        if self._phase is not SessionPhase.PROPOSAL_SHOWN:
            raise InvalidTransitionError(self._phase, SessionPhase.IDLE)
        proposal = self.proposal
        self._reset()
        self.bus.emit("revision.rejected", proposal)

    def cancel(self) -> None:
        """Close whichever dialog is open; the buffer is never touched."""

        if self._phase is SessionPhase.IDLE:
            return
        if self._phase is SessionPhase.APPLYING:
            raise InvalidTransitionError(self._phase, SessionPhase.IDLE)
        self._generation += 1
        self._reset()
        self.bus.emit("revision.cancelled", None)

    def close(self) -> None:
        self.tracker.detach()

    def _on_selection(self, snapshot: Optional[SelectionSnapshot]) -> None:
        self.bus.emit("selection.changed", snapshot)

    def _on_replacement_complete(self, outcome: ReplacementOutcome) -> None:
        self.last_outcome = outcome
        self._reset()
        self.tracker.clear()
        event = "revision.applied" if outcome.applied else "revision.unmatched"
        self.bus.emit(event, outcome)

    def _reset(self) -> None:
        self.query_text = None
        self.proposal = None
        self.pending = None
        if self._phase is not SessionPhase.IDLE:
            self._transition(SessionPhase.IDLE)

    def _check(self, target: SessionPhase) -> None:
        if target not in TRANSITIONS[self._phase]:
            raise InvalidTransitionError(self._phase, target)

    def _transition(self, target: SessionPhase) -> None:
        self._check(target)
        previous = self._phase
        self._phase = target
        telemetry.record_event(
            "session.phase",
            data={"from": previous.value, "to": target.value},
            logger_name="draft_engine.session",
        )
        self.bus.emit("session.phase", {"from": previous, "to": target})


__all__ = [
    "InvalidTransitionError",
    "NoSelectionError",
    "RevisionSession",
    "SessionError",
    "SessionPhase",
    "TRANSITIONS",
]
