from .monitor import (
    DEFAULT_MIN_DISTRACTION_SECONDS,
    AwayInterval,
    LastDistraction,
    VisibilityMonitor,
    VisibilityState,
    observe,
)
from .source import ManualVisibilitySource, VisibilitySource

__all__ = [
    "DEFAULT_MIN_DISTRACTION_SECONDS",
    "AwayInterval",
    "LastDistraction",
    "VisibilityMonitor",
    "VisibilityState",
    "observe",
    "ManualVisibilitySource",
    "VisibilitySource",
]
