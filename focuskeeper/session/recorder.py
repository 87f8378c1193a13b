from __future__ import annotations

"""SessionRecorder: pure update functions over PersistedSession.

Every function returns a new snapshot and leaves its argument untouched.
None of them touch a clock unless `now_ms` is omitted.
"""

from typing import Any, Optional

from ..clock import default_clock
from ..timer.engine import TimerState
from .schema import AnswerRecord, DistractionRecord, PersistedSession, TimerSnapshot


def _now(now_ms: Optional[int]) -> int:
    return int(now_ms) if now_ms is not None else default_clock().epoch_ms()


def create_initial_timer_state(now_ms: Optional[int] = None) -> TimerSnapshot:
    now = _now(now_ms)
    return TimerSnapshot(start_time=now, focused_time=0, away_time=0, last_active_time=now)


def create_new_session(
    learner_id: str,
    session_id: str,
    level: str,
    worksheet: int,
    now_ms: Optional[int] = None,
) -> PersistedSession:
    now = _now(now_ms)
    return PersistedSession(
        learner_id=learner_id,
        session_id=session_id,
        level=level,
        worksheet=int(worksheet),
        question_index=0,
        answers={},
        timer=create_initial_timer_state(now),
        distractions=[],
        created_at=now,
        last_saved_at=now,
    )


def _contribution(record: AnswerRecord) -> dict[str, int]:
    correct = record.is_correct
    return {
        "problems_correct": 1 if correct else 0,
        "first_try_correct": 1 if correct and record.attempt_count == 1 else 0,
        "with_hints_correct": 1 if correct and record.used_hint else 0,
        "total_incorrect": 0 if correct else 1,
    }


def record_answer(session: PersistedSession, problem_index: int, record: AnswerRecord) -> PersistedSession:
    """Insert `record` at `problem_index` and update the tallies.

    Recording the same index twice replaces the earlier answer and backs out
    its contribution, so `problems_completed` always equals `len(answers)`.
    """
    problem_index = int(problem_index)
    answers = dict(session.answers)
    previous = answers.get(problem_index)
    answers[problem_index] = record

    counters = {
        "problems_correct": session.problems_correct,
        "first_try_correct": session.first_try_correct,
        "with_hints_correct": session.with_hints_correct,
        "total_incorrect": session.total_incorrect,
    }
    if previous is not None:
        for k, v in _contribution(previous).items():
            counters[k] -= v
    for k, v in _contribution(record).items():
        counters[k] += v

    return session.model_copy(
        update={
            "answers": answers,
            "question_index": problem_index + 1,
            "problems_completed": len(answers),
            **counters,
        }
    )


def record_distraction(session: PersistedSession, left_at_ms: int, returned_at_ms: int) -> PersistedSession:
    duration = max(0, (int(returned_at_ms) - int(left_at_ms)) // 1000)
    entry = DistractionRecord(left_at=int(left_at_ms), returned_at=int(returned_at_ms), duration=duration)
    timer = session.timer.model_copy(update={"away_time": session.timer.away_time + duration})
    return session.model_copy(update={"distractions": [*session.distractions, entry], "timer": timer})


def update_focused_time(
    session: PersistedSession, additional_seconds: int, now_ms: Optional[int] = None
) -> PersistedSession:
    timer = session.timer.model_copy(
        update={
            "focused_time": session.timer.focused_time + max(0, int(additional_seconds)),
            "last_active_time": _now(now_ms),
        }
    )
    return session.model_copy(update={"timer": timer})


def apply_timer_state(session: PersistedSession, state: TimerState, now_ms: Optional[int] = None) -> PersistedSession:
    """Fold engine buckets into the snapshot without letting either shrink."""
    timer = session.timer.model_copy(
        update={
            "focused_time": max(session.timer.focused_time, state.focused_seconds),
            "away_time": max(session.timer.away_time, state.away_seconds),
            "last_active_time": _now(now_ms),
        }
    )
    return session.model_copy(update={"timer": timer})


def update_page_state(session: PersistedSession, page_state: Any) -> PersistedSession:
    return session.model_copy(update={"worksheet_page_state": page_state})


def timer_state_from_snapshot(snapshot: TimerSnapshot) -> TimerState:
    return TimerState(focused_seconds=snapshot.focused_time, away_seconds=snapshot.away_time)
