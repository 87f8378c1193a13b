from __future__ import annotations

"""Session summaries and human-readable time formatting."""

from dataclasses import asdict, dataclass
from typing import Any, Dict

from ..session.schema import PersistedSession
from ..timer.engine import compute_focus_score


@dataclass(frozen=True)
class SessionSummary:
    """Final counters handed to read-only consumers such as achievements."""

    learner_id: str
    session_id: str
    level: str
    worksheet: int
    focused_seconds: int
    away_seconds: int
    total_seconds: int
    focus_score: int
    distraction_count: int
    problems_completed: int
    problems_correct: int
    first_try_correct: int
    with_hints_correct: int
    total_incorrect: int

    def to_json(self) -> Dict[str, Any]:
        return asdict(self)

    @property
    def accuracy(self) -> float:
        if self.problems_completed == 0:
            return 0.0
        return self.problems_correct / self.problems_completed


def summarize_session(session: PersistedSession) -> SessionSummary:
    focused = session.timer.focused_time
    away = session.timer.away_time
    return SessionSummary(
        learner_id=session.learner_id,
        session_id=session.session_id,
        level=session.level,
        worksheet=session.worksheet,
        focused_seconds=focused,
        away_seconds=away,
        total_seconds=focused + away,
        focus_score=compute_focus_score(focused, away),
        distraction_count=len(session.distractions),
        problems_completed=session.problems_completed,
        problems_correct=session.problems_correct,
        first_try_correct=session.first_try_correct,
        with_hints_correct=session.with_hints_correct,
        total_incorrect=session.total_incorrect,
    )


def format_time(seconds: int) -> str:
    """Format seconds as M:SS."""
    seconds = max(0, int(seconds))
    mins, secs = divmod(seconds, 60)
    return f"{mins}:{secs:02d}"


def _plural(n: int, unit: str) -> str:
    return f"{n} {unit}{'' if n == 1 else 's'}"


def format_time_detailed(seconds: int) -> str:
    """Format seconds as e.g. '45 seconds', '2 minutes', '1 minute 5 seconds'."""
    seconds = max(0, int(seconds))
    if seconds < 60:
        return _plural(seconds, "second")
    mins, secs = divmod(seconds, 60)
    if secs == 0:
        return _plural(mins, "minute")
    return f"{_plural(mins, 'minute')} {_plural(secs, 'second')}"


def format_summary(summary: SessionSummary) -> str:
    """Return a human-readable summary of a finished session."""
    lines = [
        f"Level {summary.level}, worksheet {summary.worksheet}",
        f"Total: {summary.problems_correct}/{summary.problems_completed} correct",
        f"First try: {summary.first_try_correct}  With hints: {summary.with_hints_correct}  Incorrect: {summary.total_incorrect}",
        f"Time: {format_time(summary.total_seconds)} (focused {format_time(summary.focused_seconds)}, away {format_time(summary.away_seconds)})",
        f"Focus score: {summary.focus_score}%",
    ]
    if summary.distraction_count:
        lines.append(f"Distractions: {summary.distraction_count}")
    return "\n".join(lines)
