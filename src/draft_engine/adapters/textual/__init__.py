"""Textual host adapter."""

from .controller import (
    BlockLayoutMeasurer,
    EditorUIHooks,
    TextualRevisionAdapter,
    block_ranges,
    render_mirror,
)

__all__ = [
    "BlockLayoutMeasurer",
    "EditorUIHooks",
    "TextualRevisionAdapter",
    "block_ranges",
    "render_mirror",
]
