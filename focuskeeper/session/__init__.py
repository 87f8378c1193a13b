from .backends import JsonFileStore, MemoryStore, PersistentStore, make_backend
from .recorder import (
    apply_timer_state,
    create_initial_timer_state,
    create_new_session,
    record_answer,
    record_distraction,
    timer_state_from_snapshot,
    update_focused_time,
    update_page_state,
)
from .schema import AnswerRecord, DistractionRecord, PersistedSession, TimerSnapshot
from .store import STALE_AFTER_MS, STORAGE_KEY, SessionStore

__all__ = [
    "JsonFileStore",
    "MemoryStore",
    "PersistentStore",
    "make_backend",
    "apply_timer_state",
    "create_initial_timer_state",
    "create_new_session",
    "record_answer",
    "record_distraction",
    "timer_state_from_snapshot",
    "update_focused_time",
    "update_page_state",
    "AnswerRecord",
    "DistractionRecord",
    "PersistedSession",
    "TimerSnapshot",
    "STALE_AFTER_MS",
    "STORAGE_KEY",
    "SessionStore",
]
