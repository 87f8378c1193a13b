import json
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from pydantic import ValidationError

from focuskeeper.history import (
    DTYPES,
    HistoryConfig,
    SessionHistoryRow,
    append_session_history,
    archive_session,
    export_ndjson,
    focus_trend,
    init_store,
    learner_totals,
    load_all,
    query_learner,
    validate_records,
)
from focuskeeper.session import AnswerRecord, create_new_session, record_answer, update_focused_time

T0 = datetime(2024, 3, 1, 16, 0, tzinfo=timezone.utc)


def _row(session_id: str, learner: str, focused: int, away: int, score: int, day: int) -> SessionHistoryRow:
    return SessionHistoryRow(
        session_id=session_id,
        learner_id=learner,
        level="3A",
        worksheet=day,
        completed_at=T0 + timedelta(days=day),
        focused_s=focused,
        away_s=away,
        focus_score=score,
        distractions=1 if away else 0,
        problems_completed=10,
        problems_correct=8,
    )


class HistoryStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.data_path = Path(self._tmp.name)
        init_store(self.data_path)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _seed(self) -> None:
        rows = [
            _row("a2", "A", 150, 50, 75, day=2),
            _row("a1", "A", 90, 10, 90, day=1),
            _row("a3", "A", 20, 0, 100, day=3),
            _row("b1", "B", 60, 60, 50, day=1),
        ]
        append_session_history(validate_records(rows), self.data_path)

    def test_empty_store_has_schema(self) -> None:
        df = load_all(self.data_path)
        self.assertTrue(df.empty)
        for col in DTYPES:
            self.assertIn(col, df.columns)
        self.assertIn("total_s", df.columns)
        self.assertIn("accuracy", df.columns)

    def test_load_adds_derived_columns(self) -> None:
        self._seed()
        df = load_all(self.data_path)
        self.assertEqual(len(df), 4)
        self.assertEqual(str(df["focus_score"].dtype), "UInt8")
        row = df[df["session_id"] == "a1"].iloc[0]
        self.assertEqual(int(row["total_s"]), 100)
        self.assertAlmostEqual(float(row["accuracy"]), 0.8, places=5)

    def test_query_learner_is_chronological(self) -> None:
        self._seed()
        rows = query_learner(load_all(self.data_path), "A")
        self.assertEqual(rows["session_id"].tolist(), ["a1", "a2", "a3"])

    def test_learner_totals_weights_by_length(self) -> None:
        self._seed()
        totals = learner_totals(load_all(self.data_path), "A")
        self.assertEqual(totals["sessions"], 3)
        self.assertEqual(totals["total_focused_s"], 260)
        self.assertEqual(totals["total_away_s"], 60)
        self.assertEqual(totals["total_distractions"], 2)
        self.assertEqual(totals["problems_completed"], 30)
        # a3 is shorter than min_session_seconds and left out
        self.assertAlmostEqual(totals["avg_focus_score"], 80.0)

        everything = learner_totals(load_all(self.data_path), "A", HistoryConfig(min_session_seconds=0))
        self.assertAlmostEqual(everything["avg_focus_score"], (9000 + 15000 + 2000) / 320)

    def test_learner_totals_without_sessions(self) -> None:
        totals = learner_totals(load_all(self.data_path), "nobody")
        self.assertEqual(totals["sessions"], 0)
        self.assertIsNone(totals["avg_focus_score"])

    def test_focus_trend(self) -> None:
        self._seed()
        trend = focus_trend(load_all(self.data_path), "A", HistoryConfig(smoothing_span=2))
        self.assertEqual(list(trend.columns), ["session_id", "completed_at", "focus_score", "focus_score_smooth"])
        self.assertAlmostEqual(float(trend["focus_score_smooth"].iloc[0]), 90.0, places=4)
        smooth = trend["focus_score_smooth"].tolist()
        self.assertTrue(75.0 < smooth[1] < 90.0)

    def test_archive_session_keeps_latest_row(self) -> None:
        session = create_new_session("A", "s-1", "3A", 4, now_ms=1_700_000_000_000)
        session = record_answer(session, 0, AnswerRecord(answer="5", isCorrect=True))
        archive_session(update_focused_time(session, 40, now_ms=1_700_000_040_000), self.data_path)
        archive_session(update_focused_time(session, 70, now_ms=1_700_000_070_000), self.data_path)
        df = load_all(self.data_path)
        self.assertEqual(len(df), 1)
        self.assertEqual(int(df["focused_s"].iloc[0]), 70)
        self.assertEqual(int(df["focus_score"].iloc[0]), 100)
        self.assertEqual(int(df["problems_correct"].iloc[0]), 1)

    def test_invalid_rows_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            validate_records([{**_row("x", "A", 1, 1, 50, 1).model_dump(), "problems_correct": 11}])
        with self.assertRaises(TypeError):
            validate_records(_row("x", "A", 1, 1, 50, 1))

    def test_naive_timestamps_become_utc(self) -> None:
        row = SessionHistoryRow(**{**_row("x", "A", 1, 1, 50, 1).model_dump(), "completed_at": datetime(2024, 1, 1)})
        self.assertEqual(row.completed_at.tzinfo, timezone.utc)

    def test_export_ndjson(self) -> None:
        self._seed()
        out = self.data_path / "export" / "history.ndjson"
        export_ndjson(load_all(self.data_path), out)
        lines = out.read_text(encoding="utf-8").splitlines()
        self.assertEqual(len(lines), 4)
        self.assertIn("session_id", json.loads(lines[0]))


if __name__ == "__main__":
    unittest.main()
