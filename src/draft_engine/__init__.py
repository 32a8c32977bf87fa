"""UI-agnostic revision engine for rich-text documents."""

__all__ = [
    "adapters",
    "buffer",
    "revision",
    "runtime",
    "selection",
    "session",
]

__version__ = "0.1.0"
