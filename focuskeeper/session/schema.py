from __future__ import annotations

"""Pydantic models for the durable session snapshot.

Field aliases are the camelCase names written to storage, so a snapshot
serialized with `by_alias=True` reads:

    {"childId", "sessionId", "level", "worksheet", "questionIndex",
     "worksheetPageState", "answers": {"<index>": {...}},
     "timer": {"startTime", "focusedTime", "awayTime", "lastActiveTime"},
     "distractions": [{"leftAt", "returnedAt", "duration"}],
     "problemsCompleted", "problemsCorrect", "firstTryCorrect",
     "withHintsCorrect", "totalIncorrect", "createdAt", "lastSavedAt"}
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class _Snapshot(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class AnswerRecord(_Snapshot):
    answer_text: str = Field(alias="answer")
    is_correct: bool = Field(alias="isCorrect")
    time_spent_seconds: int = Field(default=0, ge=0, alias="timeSpent")
    attempt_count: int = Field(default=1, ge=1, alias="attemptCount")
    hint_level_reached: Optional[str] = Field(default=None, alias="hintLevelReached")

    @property
    def used_hint(self) -> bool:
        return bool(self.hint_level_reached)


class TimerSnapshot(_Snapshot):
    start_time: int = Field(alias="startTime")
    focused_time: int = Field(default=0, ge=0, alias="focusedTime")
    away_time: int = Field(default=0, ge=0, alias="awayTime")
    last_active_time: int = Field(alias="lastActiveTime")


class DistractionRecord(_Snapshot):
    left_at: int = Field(alias="leftAt")
    returned_at: int = Field(alias="returnedAt")
    duration: int = Field(ge=0)


class PersistedSession(_Snapshot):
    learner_id: str = Field(alias="childId")
    session_id: str = Field(alias="sessionId")
    level: str
    worksheet: int
    question_index: int = Field(default=0, ge=0, alias="questionIndex")
    # Owned by the worksheet UI; carried through untouched
    worksheet_page_state: Optional[Any] = Field(default=None, alias="worksheetPageState")
    answers: Dict[int, AnswerRecord] = Field(default_factory=dict)
    timer: TimerSnapshot
    distractions: List[DistractionRecord] = Field(default_factory=list)
    problems_completed: int = Field(default=0, ge=0, alias="problemsCompleted")
    problems_correct: int = Field(default=0, ge=0, alias="problemsCorrect")
    first_try_correct: int = Field(default=0, ge=0, alias="firstTryCorrect")
    with_hints_correct: int = Field(default=0, ge=0, alias="withHintsCorrect")
    total_incorrect: int = Field(default=0, ge=0, alias="totalIncorrect")
    created_at: int = Field(alias="createdAt")
    last_saved_at: int = Field(alias="lastSavedAt")

    @model_validator(mode="after")
    def _check_counters(self) -> "PersistedSession":
        if self.problems_completed != len(self.answers):
            raise ValueError("problemsCompleted must equal the number of recorded answers")
        if self.problems_correct > self.problems_completed:
            raise ValueError("problemsCorrect must be <= problemsCompleted")
        if self.first_try_correct > self.problems_correct:
            raise ValueError("firstTryCorrect must be <= problemsCorrect")
        if self.with_hints_correct > self.problems_correct:
            raise ValueError("withHintsCorrect must be <= problemsCorrect")
        if self.last_saved_at < self.created_at:
            raise ValueError("lastSavedAt must be >= createdAt")
        return self

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw: str | bytes) -> "PersistedSession":
        return cls.model_validate_json(raw)
