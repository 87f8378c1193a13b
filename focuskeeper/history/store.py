from __future__ import annotations

"""Parquet-backed archive of completed sessions using pandas + pyarrow.

Unit of data: one row per completed session.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from ..session.schema import PersistedSession
from ..timer.engine import compute_focus_score
from .config import HistoryConfig
from .schema import COUNT_KEYS, DTYPES, SessionHistoryRow

DATA_FILE = "session_history.parquet"


def _empty_df() -> pd.DataFrame:
    return pd.DataFrame({k: pd.Series(dtype=v) for k, v in DTYPES.items()})


def _fix_dtypes(df: pd.DataFrame) -> pd.DataFrame:
    for col, dt in DTYPES.items():
        if col in df.columns:
            df[col] = df[col].astype(dt)
        elif col in COUNT_KEYS or col == "distractions":
            df[col] = pd.Series(0, index=df.index, dtype=dt)
        else:
            df[col] = pd.Series(index=df.index, dtype=dt)
    return df[list(DTYPES.keys())]


def init_store(data_dir: Path) -> None:
    """Ensure the data directory and an empty Parquet file with the schema exist."""
    data_dir = Path(data_dir)
    data_dir.mkdir(parents=True, exist_ok=True)
    path = data_dir / DATA_FILE
    if not path.exists():
        _empty_df().to_parquet(path, engine="pyarrow", compression="zstd", index=False)


def row_from_session(session: PersistedSession, completed_at_ms: Optional[int] = None) -> SessionHistoryRow:
    ts_ms = completed_at_ms if completed_at_ms is not None else session.last_saved_at
    focused = session.timer.focused_time
    away = session.timer.away_time
    return SessionHistoryRow(
        session_id=session.session_id,
        learner_id=session.learner_id,
        level=session.level,
        worksheet=session.worksheet,
        completed_at=datetime.fromtimestamp(ts_ms / 1000, tz=timezone.utc),
        focused_s=focused,
        away_s=away,
        focus_score=compute_focus_score(focused, away),
        distractions=len(session.distractions),
        problems_completed=session.problems_completed,
        problems_correct=session.problems_correct,
        first_try_correct=session.first_try_correct,
        with_hints_correct=session.with_hints_correct,
        total_incorrect=session.total_incorrect,
    )


def validate_records(records: List[SessionHistoryRow]) -> pd.DataFrame:
    """Validate rows and return a DataFrame with the archive dtypes."""
    if not isinstance(records, list):
        raise TypeError("records must be a list[SessionHistoryRow]")
    rows = [r if isinstance(r, SessionHistoryRow) else SessionHistoryRow.model_validate(r) for r in records]
    df = pd.DataFrame([r.model_dump() for r in rows])
    if df.empty:
        return _empty_df()
    return _fix_dtypes(df)


def append_session_history(df_new: pd.DataFrame, data_path: Path) -> None:
    """Append rows; a session archived twice keeps only its latest row."""
    f = Path(data_path) / DATA_FILE
    df_old = pd.read_parquet(f, engine="pyarrow") if f.exists() else _empty_df()
    parts = [part for part in (_fix_dtypes(df_old), _fix_dtypes(df_new.copy())) if not part.empty]
    combined = pd.concat(parts, ignore_index=True) if parts else _empty_df()
    combined = combined.drop_duplicates(subset=["session_id"], keep="last")
    _fix_dtypes(combined).to_parquet(f, engine="pyarrow", compression="zstd", index=False)


def archive_session(session: PersistedSession, data_path: Path, completed_at_ms: Optional[int] = None) -> None:
    init_store(Path(data_path))
    append_session_history(validate_records([row_from_session(session, completed_at_ms)]), Path(data_path))


def load_all(data_path: Path) -> pd.DataFrame:
    """Load the archive with dtypes fixed and convenience columns added.

    Adds:
    - total_s: focused_s + away_s
    - accuracy: float32 = problems_correct / problems_completed (0 when nothing answered)
    """
    f = Path(data_path) / DATA_FILE
    df = _fix_dtypes(pd.read_parquet(f, engine="pyarrow")) if f.exists() else _empty_df()
    df["total_s"] = (df["focused_s"].astype("int64") + df["away_s"].astype("int64")).astype("UInt32")
    done = df["problems_completed"].astype("float32")
    correct = df["problems_correct"].astype("float32")
    df["accuracy"] = (correct / done.where(done > 0, other=1.0)).astype("float32")
    return df


def query_learner(df: pd.DataFrame, learner_id: str) -> pd.DataFrame:
    """Rows for one learner, oldest first."""
    dff = df[df["learner_id"].astype("string") == learner_id]
    return dff.sort_values("completed_at", kind="stable").reset_index(drop=True)


def learner_totals(df: pd.DataFrame, learner_id: str, cfg: Optional[HistoryConfig] = None) -> Dict[str, Any]:
    """Aggregate time and distraction stats across a learner's sessions.

    The average focus score is weighted by session length and ignores
    sessions shorter than `cfg.min_session_seconds`.
    """
    cfg = cfg or HistoryConfig()
    rows = query_learner(df, learner_id)
    focused = rows["focused_s"].astype("int64").to_numpy()
    away = rows["away_s"].astype("int64").to_numpy()
    total = focused + away
    keep = total >= cfg.min_session_seconds
    avg_focus: Optional[float] = None
    if keep.any() and total[keep].sum() > 0:
        avg_focus = float(np.average(rows["focus_score"].astype("float64").to_numpy()[keep], weights=total[keep]))
    return {
        "learner_id": learner_id,
        "sessions": int(len(rows)),
        "total_focused_s": int(focused.sum()),
        "total_away_s": int(away.sum()),
        "total_distractions": int(rows["distractions"].astype("int64").sum()),
        "problems_completed": int(rows["problems_completed"].astype("int64").sum()),
        "problems_correct": int(rows["problems_correct"].astype("int64").sum()),
        "avg_focus_score": avg_focus,
    }


def focus_trend(df: pd.DataFrame, learner_id: str, cfg: Optional[HistoryConfig] = None) -> pd.DataFrame:
    """Per-session focus score with an EWMA column `focus_score_smooth`."""
    cfg = cfg or HistoryConfig()
    rows = query_learner(df, learner_id)
    out = rows[["session_id", "completed_at", "focus_score"]].copy()
    out["focus_score_smooth"] = out["focus_score"].astype("float32").ewm(span=cfg.smoothing_span).mean().astype("float32")
    return out


def export_ndjson(df: pd.DataFrame, out_path: Path) -> None:
    """Export a DataFrame to line-delimited JSON (NDJSON) for quick inspection."""
    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    df.to_json(out_path, orient="records", lines=True, date_format="iso")
