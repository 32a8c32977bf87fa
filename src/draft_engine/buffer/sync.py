"""Adapter boundary types for syncing buffers with host widgets."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol, Tuple

OffsetRange = Tuple[int, int]


@dataclass(slots=True)
class BufferMirror:
    """Host-friendly snapshot describing the current buffer state.

    ``selection`` holds ``(anchor, focus)`` document offsets so hosts never
    need to resolve node keys themselves.
    """

    text: str
    blocks: Tuple[str, ...]
    selection: Optional[OffsetRange]
    version: int
    attributes: dict[str, str] = field(default_factory=dict)


class BufferSync(Protocol):
    """Protocol describing how adapters exchange data with the buffer layer."""

    def pull_buffer(self) -> BufferMirror:
        """Return the latest buffer snapshot that the host should render."""
        ...

    def push_host_selection(self, anchor: int, focus: int) -> None:
        """Report a selection made in the host widget, in document offsets."""
        ...


class BufferValidationError(RuntimeError):
    """Raised when adapters or buffers reference missing nodes or bad offsets."""

    def __init__(self, message: str, *, key: int | None = None) -> None:
        super().__init__(message)
        self.key = key
