"""Coordination of selection, revision requests, and replacement."""

from .bus import EventBus
from .session import (
    TRANSITIONS,
    InvalidTransitionError,
    NoSelectionError,
    RevisionSession,
    SessionError,
    SessionPhase,
)

__all__ = [
    "EventBus",
    "InvalidTransitionError",
    "NoSelectionError",
    "RevisionSession",
    "SessionError",
    "SessionPhase",
    "TRANSITIONS",
]
