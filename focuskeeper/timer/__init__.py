from .engine import TimerEngine, TimerState, compute_focus_score
from .scheduler import (
    AsyncioIntervalScheduler,
    IntervalScheduler,
    ManualScheduler,
    ThreadingIntervalScheduler,
    make_scheduler,
)

__all__ = [
    "TimerEngine",
    "TimerState",
    "compute_focus_score",
    "AsyncioIntervalScheduler",
    "IntervalScheduler",
    "ManualScheduler",
    "ThreadingIntervalScheduler",
    "make_scheduler",
]
