"""Runtime services: settings, telemetry, and deferred scheduling."""

from .config import EngineSettings, settings_from_env
from .scheduler import DeferredCall, DeferredScheduler

__all__ = [
    "EngineSettings",
    "settings_from_env",
    "DeferredCall",
    "DeferredScheduler",
]
