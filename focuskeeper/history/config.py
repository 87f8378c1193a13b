from __future__ import annotations

"""History aggregation settings using Pydantic."""

from pydantic import BaseModel, Field


class HistoryConfig(BaseModel):
    """Knobs for per-learner aggregates.

    - min_session_seconds: sessions shorter than this are left out of focus averages
    - smoothing_span: EWMA span (in sessions) for the focus trend (>1)
    """

    min_session_seconds: int = Field(60, ge=0)
    smoothing_span: int = Field(5, gt=1)
