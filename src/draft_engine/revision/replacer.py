"""Applies accepted revisions to the live buffer."""

from __future__ import annotations

from typing import Callable, Optional, Sequence

from draft_engine.buffer import Buffer
from draft_engine.runtime import telemetry
from draft_engine.runtime.config import EngineSettings, settings_from_env
from draft_engine.runtime.scheduler import DeferredScheduler

from .models import PendingReplacement, ReplacementOutcome
from .strategies import Mutation, Strategy, default_strategies, plan

CompletionCallback = Callable[[ReplacementOutcome], None]


class SpanReplacer:
    """Re-locates a captured span in the current buffer and substitutes it.

    At most one replacement is in flight: a second ``apply`` before the first
    one's completion tick is dropped. Completion is always delivered through
    the scheduler, whether the span matched, missed, or a strategy raised.
    """

    def __init__(
        self,
        buffer: Buffer,
        *,
        scheduler: Optional[DeferredScheduler] = None,
        strategies: Optional[Sequence[Strategy]] = None,
        settings: Optional[EngineSettings] = None,
        logger_name: str = "draft_engine.revision",
    ) -> None:
        self.buffer = buffer
        self.scheduler = scheduler or DeferredScheduler()
        self.settings = settings or settings_from_env()
        self.strategies = list(
            strategies
            if strategies is not None
            else default_strategies(
                allow_selection_fallback=self.settings.allow_selection_fallback
            )
        )
        self.logger_name = logger_name
        self._in_flight: Optional[PendingReplacement] = None

    @property
    def in_flight(self) -> bool:
        return self._in_flight is not None

    def apply(
        self,
        pending: PendingReplacement,
        on_complete: Optional[CompletionCallback] = None,
    ) -> Optional[ReplacementOutcome]:
        if self._in_flight is not None:
            telemetry.record_event(
                "replacement.duplicate_dropped",
                data={"original": pending.original_text},
                logger_name=self.logger_name,
            )
            return None

        self._in_flight = pending
        mutation: Optional[Mutation] = None
        try:
            mutation = self._run(pending)
        except Exception as exc:
            # Planning errors complete as an unapplied outcome.
            telemetry.record_event(
                "replacement.failed",
                level="error",
                data={"original": pending.original_text, "error": str(exc)},
                logger_name=self.logger_name,
            )
            failed = True
        else:
            failed = False

        outcome = ReplacementOutcome(
            original_text=pending.original_text,
            revised_text=pending.revised_text,
            strategy=mutation.strategy if mutation else None,
        )
        if not failed:
            self._report(outcome, mutation)
        self.scheduler.call_later(
            self.settings.completion_delay_ms,
            lambda: self._complete(outcome, on_complete),
            label="replacement.complete",
        )
        return outcome

    def _run(self, pending: PendingReplacement) -> Optional[Mutation]:
        with telemetry.span(
            "revision::replace",
            logger_name=self.logger_name,
            component="span_replacer",
            metadata={"buffer": self.buffer.name},
        ) as handle:
            with self.buffer.update("span_replace"):
                mutation = plan(
                    self.strategies,
                    self.buffer,
                    pending.original_text,
                    pending.revised_text,
                )
                if mutation is not None:
                    self._commit(mutation)
            handle.add_metadata("strategy", mutation.strategy if mutation else "none")
        return mutation

    def _commit(self, mutation: Mutation) -> None:
        self.buffer.document.apply_edits(mutation.edits)
        self.buffer.set_selection(mutation.caret, mutation.caret)

    def _report(
        self, outcome: ReplacementOutcome, mutation: Optional[Mutation]
    ) -> None:
        if mutation is None:
            telemetry.record_event(
                "replacement.unmatched",
                level="warning",
                data={
                    "original": outcome.original_text,
                    "document_head": self.buffer.text_content()[:100],
                },
                logger_name=self.logger_name,
            )
        elif mutation.replaced_text != outcome.original_text:
            telemetry.record_event(
                "replacement.fallback_mismatch",
                level="warning",
                data={
                    "original": outcome.original_text,
                    "replaced": mutation.replaced_text,
                },
                logger_name=self.logger_name,
            )
        else:
            telemetry.record_event(
                "replacement.applied",
                data={"strategy": mutation.strategy},
                logger_name=self.logger_name,
            )

    def _complete(
        self, outcome: ReplacementOutcome, on_complete: Optional[CompletionCallback]
    ) -> None:
        self._in_flight = None
        if on_complete is not None:
            on_complete(outcome)


__all__ = ["SpanReplacer", "CompletionCallback"]
