"""Value objects exchanged with the revision service and the span replacer."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional


class ChangeType(str, Enum):
    GRAMMAR = "grammar"
    STYLE = "style"
    CLARITY = "clarity"
    TONE = "tone"
    STRUCTURE = "structure"
    WORD_CHOICE = "word_choice"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


class RevisionServiceError(RuntimeError):
    """The revision service rejected a request or could not be reached."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


@dataclass(frozen=True, slots=True)
class RevisionRequest:
    selected_text: str
    instruction: str

    def __post_init__(self) -> None:
        if not self.selected_text.strip():
            raise ValueError("selected_text cannot be blank")
        if not self.instruction.strip():
            raise ValueError("instruction cannot be blank")

    def to_payload(self) -> dict[str, str]:
        # ``query`` is the field name the existing revise-text route reads.
        return {
            "selectedText": self.selected_text,
            "instruction": self.instruction,
            "query": self.instruction,
        }


@dataclass(frozen=True, slots=True)
class RevisionChange:
    type: ChangeType
    description: str


@dataclass(frozen=True, slots=True)
class RevisionResult:
    """A proposed revision of ``original_text``."""

    original_text: str
    revised_text: str
    explanation: str = ""
    confidence: float = 0.0
    changes: tuple[RevisionChange, ...] = ()
    instruction: str = ""

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence {self.confidence} outside [0, 1]")

    @classmethod
    def from_payload(
        cls, payload: Mapping[str, Any], *, request: Optional[RevisionRequest] = None
    ) -> "RevisionResult":
        """Validate a service response body.

        ``{"success": false, "error": ...}`` bodies and malformed fields raise
        ``RevisionServiceError``.
        """

        if payload.get("success") is False:
            message = payload.get("error") or "Failed to revise text"
            raise RevisionServiceError(str(message))
        revised = payload.get("revisedText")
        if not isinstance(revised, str):
            raise RevisionServiceError("Response is missing 'revisedText'")
        original = payload.get("originalText")
        if not isinstance(original, str):
            original = request.selected_text if request else ""
        try:
            changes = tuple(
                RevisionChange(
                    type=ChangeType(str(item["type"])),
                    description=str(item.get("description", "")),
                )
                for item in payload.get("changes") or ()
            )
            return cls(
                original_text=original,
                revised_text=revised,
                explanation=str(payload.get("explanation") or ""),
                confidence=float(payload.get("confidence", 0.0)),
                changes=changes,
                instruction=str(
                    payload.get("query") or (request.instruction if request else "")
                ),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise RevisionServiceError(f"Malformed revision response: {exc}") from exc


@dataclass(frozen=True, slots=True)
class PendingReplacement:
    """An accepted revision waiting to be applied exactly once."""

    original_text: str
    revised_text: str

    def __post_init__(self) -> None:
        if not self.original_text:
            raise ValueError("original_text cannot be empty")


@dataclass(frozen=True, slots=True)
class ReplacementOutcome:
    original_text: str
    revised_text: str
    strategy: Optional[str] = None

    @property
    def applied(self) -> bool:
        return self.strategy is not None


__all__ = [
    "ChangeType",
    "PendingReplacement",
    "ReplacementOutcome",
    "RevisionChange",
    "RevisionRequest",
    "RevisionResult",
    "RevisionServiceError",
]
