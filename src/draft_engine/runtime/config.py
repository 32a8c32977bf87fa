"""Environment-driven settings shared by the selection and revision layers."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Optional

ENV_PREFIX = "DRAFT_ENGINE_"

DEFAULT_MAX_SELECTION_LENGTH = 10_000
DEFAULT_POINTER_UP_DELAY_MS = 10
DEFAULT_COMPLETION_DELAY_MS = 0
DEFAULT_REVISION_URL = "http://127.0.0.1:3000/api/ai/revise-text"

# Characters the host inserts as invisible caret/format markers.
ZERO_WIDTH_MARKERS = frozenset({"\ufeff", "\u200b", "\u2060"})


def env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


def env_flag(name: str, default: bool) -> bool:
    raw = env(name)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


def env_int(name: str, default: int) -> int:
    raw = env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True, slots=True)
class EngineSettings:
    """Tunables for selection validation and replacement scheduling."""

    max_selection_length: int = DEFAULT_MAX_SELECTION_LENGTH
    pointer_up_delay_ms: int = DEFAULT_POINTER_UP_DELAY_MS
    completion_delay_ms: int = DEFAULT_COMPLETION_DELAY_MS
    allow_selection_fallback: bool = False
    revision_url: str = DEFAULT_REVISION_URL
    zero_width_markers: frozenset[str] = ZERO_WIDTH_MARKERS

    def __post_init__(self) -> None:
        if self.max_selection_length <= 0:
            raise ValueError("max_selection_length must be positive")
        if self.pointer_up_delay_ms < 0 or self.completion_delay_ms < 0:
            raise ValueError("delays cannot be negative")

    def with_overrides(self, **changes: object) -> "EngineSettings":
        return replace(self, **changes)


def settings_from_env() -> EngineSettings:
    """Build settings from ``DRAFT_ENGINE_*`` variables, defaulting on bad input."""

    return EngineSettings(
        max_selection_length=max(
            1, env_int("MAX_SELECTION_LENGTH", DEFAULT_MAX_SELECTION_LENGTH)
        ),
        pointer_up_delay_ms=max(
            0, env_int("POINTER_UP_DELAY_MS", DEFAULT_POINTER_UP_DELAY_MS)
        ),
        completion_delay_ms=max(
            0, env_int("COMPLETION_DELAY_MS", DEFAULT_COMPLETION_DELAY_MS)
        ),
        allow_selection_fallback=env_flag("ALLOW_SELECTION_FALLBACK", False),
        revision_url=env("REVISION_URL") or DEFAULT_REVISION_URL,
    )


__all__ = [
    "ENV_PREFIX",
    "EngineSettings",
    "ZERO_WIDTH_MARKERS",
    "env",
    "env_flag",
    "env_int",
    "settings_from_env",
]
