import tempfile
import unittest
from pathlib import Path

from focuskeeper.app import SessionManager
from focuskeeper.clock import ManualClock
from focuskeeper.config import validate_config
from focuskeeper.history import load_all
from focuskeeper.session import AnswerRecord, MemoryStore
from focuskeeper.timer import ManualScheduler, TimerState, compute_focus_score
from focuskeeper.visibility import ManualVisibilitySource


def _cfg(**history):
    cfg = {"storage": {"backend": "memory"}, "timer": {"scheduler": "manual"}}
    if history:
        cfg["history"] = history
    return validate_config(cfg)


class SessionManagerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = ManualClock()
        self.backend = MemoryStore()
        self.source = ManualVisibilitySource()
        self.scheduler = ManualScheduler()
        self.manager = self._manager()

    def _manager(self, cfg=None, **kwargs) -> SessionManager:
        return SessionManager(
            cfg or _cfg(),
            visibility_source=kwargs.pop("source", self.source),
            clock=self.clock,
            scheduler=kwargs.pop("scheduler", self.scheduler),
            backend=self.backend,
            **kwargs,
        )

    def _tick(self, n: int = 1) -> None:
        for _ in range(n):
            self.clock.advance(1)
            self.scheduler.fire()

    def _away(self, seconds: float) -> None:
        self.source.hide()
        self.clock.advance(seconds)
        self.source.show()

    def test_worksheet_survives_reload(self) -> None:
        m = self.manager
        m.start_session("learner-A", "3A", 12, session_id="s-1")
        self._tick(120)
        self._away(10)

        answers = [
            (True, 1, None),
            (True, 1, None),
            (True, 1, None),
            (True, 2, "hint1"),
            (False, 3, None),
        ]
        for i, (correct, attempts, hint) in enumerate(answers):
            m.record_answer(
                i,
                AnswerRecord(
                    answer=str(i), isCorrect=correct, timeSpent=20, attemptCount=attempts, hintLevelReached=hint
                ),
            )
        m.save_session()
        m.dispose()

        # page reload: new process objects, same durable slot
        fresh = self._manager(source=ManualVisibilitySource(), scheduler=ManualScheduler())
        restored = fresh.load_session("learner-A")
        self.assertIsNotNone(restored)
        self.assertEqual(restored.timer.focused_time, 120)
        self.assertEqual(restored.timer.away_time, 10)
        self.assertEqual(compute_focus_score(restored.timer.focused_time, restored.timer.away_time), 92)
        self.assertEqual(restored.problems_completed, 5)
        self.assertEqual(restored.problems_correct, 4)
        self.assertEqual(restored.first_try_correct, 3)
        self.assertEqual(restored.with_hints_correct, 1)
        self.assertEqual(restored.total_incorrect, 1)
        self.assertEqual(len(restored.distractions), 1)
        self.assertEqual(restored.distractions[0].duration, 10)
        self.assertEqual(restored.question_index, 5)

        resumed = fresh.resume_or_start("learner-A", "3A", 12)
        self.assertEqual(resumed.session_id, "s-1")
        self.assertTrue(fresh.ctx.resumed)
        state = fresh.get_timer_state()
        self.assertEqual((state.focused_seconds, state.away_seconds), (120, 10))
        self.assertFalse(state.is_paused)

    def test_short_away_is_time_but_not_a_distraction(self) -> None:
        self.manager.start_session("learner-A", "3A", 1)
        self._away(2)
        session = self.manager.session
        self.assertEqual(session.timer.away_time, 2)
        self.assertEqual(session.distractions, [])
        self.assertEqual(self.manager.visibility_state().distraction_count, 0)

    def test_hidden_edge_saves_immediately(self) -> None:
        self.manager.start_session("learner-A", "3A", 1)
        self._tick(4)
        self.source.hide()
        self.assertEqual(self.manager.load_session("learner-A").timer.focused_time, 4)

    def test_autosave_every_n_focused_seconds(self) -> None:
        self.manager.start_session("learner-A", "3A", 1)
        self._tick(10)
        self.assertEqual(self.manager.load_session("learner-A").timer.focused_time, 10)
        self._tick(5)
        self.assertEqual(self.manager.load_session("learner-A").timer.focused_time, 10)
        self.assertEqual(self.manager.session.timer.focused_time, 15)

    def test_resume_other_worksheet_starts_fresh(self) -> None:
        self.manager.start_session("learner-A", "3A", 1, session_id="old")
        fresh = self._manager(source=ManualVisibilitySource(), scheduler=ManualScheduler())
        session = fresh.resume_or_start("learner-A", "3A", 2, session_id="new")
        self.assertEqual(session.session_id, "new")
        self.assertFalse(fresh.ctx.resumed)
        self.assertEqual(fresh.load_session("learner-A").session_id, "new")

    def test_other_learner_never_sees_snapshot(self) -> None:
        self.manager.start_session("learner-A", "3A", 1)
        self.assertFalse(self.manager.has_active_session("learner-B"))
        self.assertTrue(self.manager.has_active_session("learner-A"))

    def test_caller_pause_survives_background(self) -> None:
        self.manager.start_session("learner-A", "3A", 1)
        self._tick(3)
        self.manager.pause()
        self._away(6)
        state = self.manager.get_timer_state()
        self.assertTrue(state.is_paused)
        self.assertEqual(state.away_seconds, 6)
        self.manager.resume()
        self._tick(2)
        self.assertEqual(self.manager.get_timer_state().focused_seconds, 5)

    def test_manual_records_feed_engine(self) -> None:
        self.manager.start_session("learner-A", "3A", 1)
        now = self.clock.epoch_ms()
        self.manager.record_distraction(now - 5000, now)
        self.manager.update_focused_time(30)
        state = self.manager.get_timer_state()
        self.assertEqual((state.focused_seconds, state.away_seconds), (30, 5))
        self._tick(1)
        session = self.manager.session
        self.assertEqual((session.timer.focused_time, session.timer.away_time), (31, 5))
        self.assertEqual(len(session.distractions), 1)

    def test_restore_overwrites_session_timer(self) -> None:
        self.manager.start_session("learner-A", "3A", 1)
        self._tick(8)
        self.manager.restore_from_state(TimerState(focused_seconds=2, away_seconds=1))
        self.manager.save_session()
        timer = self.manager.load_session().timer
        self.assertEqual((timer.focused_time, timer.away_time), (2, 1))

    def test_page_state_is_saved(self) -> None:
        self.manager.start_session("learner-A", "3A", 1)
        self.manager.update_page_state({"scroll": 40})
        self.assertEqual(self.manager.load_session().worksheet_page_state, {"scroll": 40})

    def test_hooks_and_events(self) -> None:
        ticks, changes, saved = [], [], []
        m = self._manager(on_tick=ticks.append, on_visibility_change=lambda v, a: changes.append((v, a)))
        m.events.subscribe("session_saved", saved.append)
        m.start_session("learner-A", "3A", 1)
        self._tick(2)
        self._away(4)
        self.assertEqual([t.focused_seconds for t in ticks], [1, 2])
        self.assertEqual(changes, [(False, None), (True, 4)])
        self.assertGreaterEqual(len(saved), 3)

    def test_failed_write_is_not_reported_as_saved(self) -> None:
        backend = MemoryStore(max_bytes=10)
        m = SessionManager(
            _cfg(), visibility_source=self.source, clock=self.clock, scheduler=self.scheduler, backend=backend
        )
        saved = []
        m.events.subscribe("session_saved", saved.append)
        with self.assertLogs("focuskeeper.session.store", level="WARNING"):
            m.start_session("learner-A", "3A", 1)
            self._tick(10)
        self.assertEqual(saved, [])
        self.assertFalse(m.has_active_session("learner-A"))

        # quota freed: the next tick retries because the baseline never moved
        backend.max_bytes = None
        self._tick(1)
        self.assertEqual(len(saved), 1)
        self.assertEqual(m.load_session("learner-A").timer.focused_time, 11)

    def test_recording_without_session_raises(self) -> None:
        with self.assertRaises(RuntimeError):
            self.manager.record_answer(0, AnswerRecord(answer="1", isCorrect=True))
        self.assertIsNone(self.manager.save_session())

    def test_complete_session_archives_and_clears(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            m = self._manager(_cfg(enabled=True, path=tmp))
            completed = []
            m.events.subscribe("session_completed", completed.append)
            m.start_session("learner-A", "3A", 7, session_id="s-9")
            self._tick(30)
            m.record_answer(0, AnswerRecord(answer="9", isCorrect=True))
            summary = m.complete_session()

            self.assertEqual(summary.focused_seconds, 30)
            self.assertEqual(summary.focus_score, 100)
            self.assertEqual(summary.problems_correct, 1)
            self.assertEqual(completed, [summary])
            self.assertFalse(m.has_active_session("learner-A"))
            self.assertIsNone(m.session)

            df = load_all(Path(tmp))
            self.assertEqual(df["session_id"].tolist(), ["s-9"])
            self.assertEqual(int(df["focused_s"].iloc[0]), 30)

    def test_dispose_is_idempotent_and_stops_ticking(self) -> None:
        self.manager.start_session("learner-A", "3A", 1)
        self._tick(3)
        self.manager.dispose()
        self.manager.dispose()
        self.assertEqual(self.scheduler.active, 0)
        self.assertFalse(self.source.has_subscribers())
        self.assertEqual(self.manager.load_session().timer.focused_time, 3)

    def test_stale_snapshot_is_not_resumed(self) -> None:
        self.manager.start_session("learner-A", "3A", 1, session_id="old")
        self.manager.dispose()
        self.clock.advance(25 * 60 * 60)
        fresh = self._manager(source=ManualVisibilitySource(), scheduler=ManualScheduler())
        self.assertEqual(fresh.resume_or_start("learner-A", "3A", 1, session_id="new").session_id, "new")


if __name__ == "__main__":
    unittest.main()
