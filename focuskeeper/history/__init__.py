from .config import HistoryConfig
from .schema import DTYPES, SessionHistoryRow
from .store import (
    append_session_history,
    archive_session,
    export_ndjson,
    focus_trend,
    init_store,
    learner_totals,
    load_all,
    query_learner,
    row_from_session,
    validate_records,
)

__all__ = [
    "HistoryConfig",
    "DTYPES",
    "SessionHistoryRow",
    "append_session_history",
    "archive_session",
    "export_ndjson",
    "focus_trend",
    "init_store",
    "learner_totals",
    "load_all",
    "query_learner",
    "row_from_session",
    "validate_records",
]
