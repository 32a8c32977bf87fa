"""Revision proposals, the external service client, and span replacement."""

from .models import (
    ChangeType,
    PendingReplacement,
    ReplacementOutcome,
    RevisionChange,
    RevisionRequest,
    RevisionResult,
    RevisionServiceError,
)
from .replacer import SpanReplacer
from .service import HttpRevisionService, RevisionService
from .strategies import (
    Mutation,
    Strategy,
    default_strategies,
    leaf_scan,
    live_selection,
    selection_fallback,
)

__all__ = [
    "ChangeType",
    "PendingReplacement",
    "ReplacementOutcome",
    "RevisionChange",
    "RevisionRequest",
    "RevisionResult",
    "RevisionServiceError",
    "SpanReplacer",
    "HttpRevisionService",
    "RevisionService",
    "Mutation",
    "Strategy",
    "default_strategies",
    "leaf_scan",
    "live_selection",
    "selection_fallback",
]
