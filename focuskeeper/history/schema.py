from __future__ import annotations

"""Schema constants and Pydantic models for the Parquet session history."""

from datetime import datetime, timezone

import pandas as pd
from pydantic import BaseModel, Field, field_validator, model_validator

DTYPES = {
    "session_id": "string",
    "learner_id": "string",
    "level": "string",
    "worksheet": "UInt16",
    # timezone-aware UTC timestamps
    "completed_at": pd.DatetimeTZDtype(tz="UTC"),
    "focused_s": "UInt32",
    "away_s": "UInt32",
    "focus_score": "UInt8",
    "distractions": "UInt16",
    "problems_completed": "UInt16",
    "problems_correct": "UInt16",
    "first_try_correct": "UInt16",
    "with_hints_correct": "UInt16",
    "total_incorrect": "UInt16",
}

COUNT_KEYS = [
    "problems_completed",
    "problems_correct",
    "first_try_correct",
    "with_hints_correct",
    "total_incorrect",
]


class SessionHistoryRow(BaseModel):
    session_id: str
    learner_id: str
    level: str
    worksheet: int = Field(ge=0, le=65535)
    completed_at: datetime
    focused_s: int = Field(ge=0, le=4294967295)
    away_s: int = Field(ge=0, le=4294967295)
    focus_score: int = Field(ge=0, le=100)
    distractions: int = Field(default=0, ge=0, le=65535)
    problems_completed: int = Field(default=0, ge=0, le=65535)
    problems_correct: int = Field(default=0, ge=0, le=65535)
    first_try_correct: int = Field(default=0, ge=0, le=65535)
    with_hints_correct: int = Field(default=0, ge=0, le=65535)
    total_incorrect: int = Field(default=0, ge=0, le=65535)

    @model_validator(mode="after")
    def _correct_le_completed(self) -> "SessionHistoryRow":
        if self.problems_correct > self.problems_completed:
            raise ValueError("problems_correct must be <= problems_completed")
        return self

    @field_validator("completed_at")
    @classmethod
    def _ensure_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)
