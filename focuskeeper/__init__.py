"""focuskeeper package initialization.

Session continuity for learning sessions: focused/away timing, distraction
tracking, and a durable snapshot that survives backgrounding and reloads.
"""

from __future__ import annotations

import logging

from .app.session_manager import SessionManager
from .clock import ManualClock, SystemClock
from .config.config import configure_logging, load_config, validate_config
from .errors import ConfigError, FocusKeeperError, StorageError, StorageQuotaExceeded
from .session.backends import JsonFileStore, MemoryStore
from .session.schema import AnswerRecord, DistractionRecord, PersistedSession, TimerSnapshot
from .session.store import SessionStore
from .stats.stats import SessionSummary, format_summary, format_time, format_time_detailed
from .timer.engine import TimerEngine, TimerState
from .timer.scheduler import ManualScheduler
from .visibility.monitor import VisibilityMonitor, VisibilityState, observe
from .visibility.source import ManualVisibilitySource

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "__version__",
    "SessionManager",
    "ManualClock",
    "SystemClock",
    "configure_logging",
    "load_config",
    "validate_config",
    "ConfigError",
    "FocusKeeperError",
    "StorageError",
    "StorageQuotaExceeded",
    "JsonFileStore",
    "MemoryStore",
    "AnswerRecord",
    "DistractionRecord",
    "PersistedSession",
    "TimerSnapshot",
    "SessionStore",
    "SessionSummary",
    "format_summary",
    "format_time",
    "format_time_detailed",
    "TimerEngine",
    "TimerState",
    "ManualScheduler",
    "VisibilityMonitor",
    "VisibilityState",
    "observe",
    "ManualVisibilitySource",
]
