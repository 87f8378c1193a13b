from __future__ import annotations

"""Session Manager: wires visibility, timer, recorder and storage together.

One manager owns one learner's active worksheet session. Timer ticks and
visibility changes fold into the in-memory snapshot. The snapshot is written
to the durable slot on every record call and visibility edge, and otherwise
every `storage.autosave_every_s` focused seconds.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional
from uuid import uuid4

from ..clock import Clock, default_clock
from ..config.config import load_config, stale_after_ms, validate_config
from ..history.store import archive_session
from ..session import recorder
from ..session.backends import PersistentStore, make_backend
from ..session.schema import AnswerRecord, PersistedSession
from ..session.store import SessionStore
from ..stats.stats import SessionSummary, summarize_session
from ..timer.engine import TimerEngine, TimerState
from ..timer.scheduler import IntervalScheduler, make_scheduler
from ..visibility.monitor import VisibilityState
from ..visibility.source import VisibilitySource
from .events import EventBus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionContext:
    learner_id: str
    session_id: str
    level: str
    worksheet: int
    started_at: datetime
    resumed: bool


@dataclass
class RuntimeState:
    focused_at_last_save: int = 0
    completed: bool = False
    disposed: bool = False


class SessionManager:
    def __init__(
        self,
        cfg: Optional[Dict[str, Any]] = None,
        *,
        visibility_source: Optional[VisibilitySource] = None,
        clock: Optional[Clock] = None,
        scheduler: Optional[IntervalScheduler] = None,
        backend: Optional[PersistentStore] = None,
        store: Optional[SessionStore] = None,
        on_tick: Optional[Callable[[TimerState], None]] = None,
        on_visibility_change: Optional[Callable[[bool, Optional[int]], None]] = None,
    ) -> None:
        self.cfg = validate_config(cfg if cfg is not None else load_config())
        self.clock = clock or default_clock()
        storage_cfg = self.cfg["storage"]
        timer_cfg = self.cfg["timer"]
        visibility_cfg = self.cfg["visibility"]

        self.store = store or SessionStore(
            backend or make_backend(storage_cfg),
            key=storage_cfg["key"],
            stale_after_ms=stale_after_ms(self.cfg),
            clock=self.clock,
        )
        self.engine = TimerEngine(
            visibility_source,
            clock=self.clock,
            scheduler=scheduler or make_scheduler(timer_cfg["scheduler"]),
            tick_interval_s=timer_cfg["tick_interval_s"],
            auto_start=timer_cfg["auto_start"],
            min_distraction_seconds=visibility_cfg["min_distraction_seconds"],
            visibility_enabled=visibility_cfg["enabled"],
            on_tick=self._handle_tick,
            on_visibility_change=self._handle_visibility,
        )
        self.events = EventBus()
        self.on_tick = on_tick
        self.on_visibility_change = on_visibility_change

        self.session: Optional[PersistedSession] = None
        self.ctx: Optional[SessionContext] = None
        self.state = RuntimeState()
        self._lock = threading.RLock()

    # --- session lifecycle ---

    def start_session(
        self, learner_id: str, level: str, worksheet: int, session_id: Optional[str] = None
    ) -> PersistedSession:
        """Begin a fresh session, overwriting whatever the slot holds."""
        session = recorder.create_new_session(
            learner_id, session_id or str(uuid4()), level, worksheet, now_ms=self.clock.epoch_ms()
        )
        self._activate(session, resumed=False)
        logger.info("Started session %s for learner %s (%s/%s)", session.session_id, learner_id, level, worksheet)
        return self.session  # type: ignore[return-value]

    def resume_or_start(
        self, learner_id: str, level: str, worksheet: int, session_id: Optional[str] = None
    ) -> PersistedSession:
        """Continue the learner's saved session for this worksheet, else start one."""
        existing = self.store.load(learner_id)
        if existing is not None and existing.level == level and existing.worksheet == int(worksheet):
            self._activate(existing, resumed=True)
            logger.info(
                "Resumed session %s for learner %s at question %d",
                existing.session_id,
                learner_id,
                existing.question_index,
            )
            return self.session  # type: ignore[return-value]
        return self.start_session(learner_id, level, worksheet, session_id)

    def _activate(self, session: PersistedSession, *, resumed: bool) -> None:
        with self._lock:
            self.session = session
            self.state = RuntimeState(focused_at_last_save=session.timer.focused_time)
            self.ctx = SessionContext(
                learner_id=session.learner_id,
                session_id=session.session_id,
                level=session.level,
                worksheet=session.worksheet,
                started_at=datetime.fromtimestamp(session.created_at / 1000, tz=timezone.utc),
                resumed=resumed,
            )
            self.engine.reset(recorder.timer_state_from_snapshot(session.timer))
            self._save_locked()
        self.events.emit("session_started", self.ctx)

    def complete_session(self) -> SessionSummary:
        """Finish normally: stop timing, archive if enabled, clear the slot."""
        with self._lock:
            session = self._require_session()
            self.engine.stop()
            session = recorder.apply_timer_state(session, self.engine.current_state(), self.clock.epoch_ms())
            self.session = session
            summary = summarize_session(session)
            history_cfg = self.cfg["history"]
            if history_cfg["enabled"]:
                try:
                    archive_session(session, Path(history_cfg["path"]), self.clock.epoch_ms())
                except Exception:
                    logger.warning("Failed to archive session %s", session.session_id, exc_info=True)
            self.store.clear()
            self.state.completed = True
            self.session = None
        logger.info(
            "Completed session %s: %d/%d correct, focus %d%%",
            summary.session_id,
            summary.problems_correct,
            summary.problems_completed,
            summary.focus_score,
        )
        self.events.emit("session_completed", summary)
        return summary

    def dispose(self) -> None:
        """Stop ticking, drop the visibility subscription, write a final snapshot."""
        with self._lock:
            if self.state.disposed:
                return
            self.engine.dispose()
            if self.session is not None:
                self._fold_timer_locked()
                self._save_locked()
            self.state.disposed = True

    # --- timer controls ---

    def start(self) -> None:
        self.engine.start()

    def stop(self) -> None:
        self.engine.stop()
        with self._lock:
            if self.session is not None:
                self._fold_timer_locked()

    def pause(self) -> None:
        self.engine.pause()
        with self._lock:
            if self.session is not None:
                self._fold_timer_locked()

    def resume(self) -> None:
        self.engine.resume()

    def reset(self, initial: Optional[TimerState] = None) -> None:
        self.engine.reset(initial)
        self._overwrite_timer(initial or TimerState())

    def get_timer_state(self) -> TimerState:
        return self.engine.current_state()

    def restore_from_state(self, state: TimerState) -> None:
        self.engine.restore_from_state(state)
        self._overwrite_timer(state)

    def visibility_state(self) -> Optional[VisibilityState]:
        return self.engine.visibility_state()

    def _overwrite_timer(self, state: TimerState) -> None:
        with self._lock:
            if self.session is None:
                return
            timer = self.session.timer.model_copy(
                update={
                    "focused_time": state.focused_seconds,
                    "away_time": state.away_seconds,
                    "last_active_time": self.clock.epoch_ms(),
                }
            )
            self.session = self.session.model_copy(update={"timer": timer})
            self.state.focused_at_last_save = state.focused_seconds

    # --- recording ---

    def record_answer(self, problem_index: int, record: AnswerRecord) -> PersistedSession:
        with self._lock:
            session = self._require_session()
            session = recorder.record_answer(session, problem_index, record)
            self.session = recorder.apply_timer_state(session, self.engine.current_state(), self.clock.epoch_ms())
            return self._save_locked()

    def record_distraction(self, left_at_ms: int, returned_at_ms: int) -> PersistedSession:
        """Log an away interval the engine did not observe itself."""
        with self._lock:
            before = self._require_session()
            after = recorder.record_distraction(before, left_at_ms, returned_at_ms)
            self.engine.credit(away_seconds=after.timer.away_time - before.timer.away_time)
            self.session = after
            return self._save_locked()

    def update_focused_time(self, additional_seconds: int) -> PersistedSession:
        with self._lock:
            before = self._require_session()
            after = recorder.update_focused_time(before, additional_seconds, self.clock.epoch_ms())
            self.engine.credit(focused_seconds=after.timer.focused_time - before.timer.focused_time)
            self.session = after
            return self._save_locked()

    def update_page_state(self, page_state: Any) -> PersistedSession:
        with self._lock:
            self.session = recorder.update_page_state(self._require_session(), page_state)
            return self._save_locked()

    # --- persistence ---

    def save_session(self) -> Optional[PersistedSession]:
        with self._lock:
            if self.session is None:
                return None
            self._fold_timer_locked()
            return self._save_locked()

    def load_session(self, learner_id: Optional[str] = None) -> Optional[PersistedSession]:
        return self.store.load(learner_id)

    def clear_session(self) -> None:
        self.store.clear()

    def has_active_session(self, learner_id: str) -> bool:
        return self.store.has_active(learner_id)

    # --- internals ---

    def _require_session(self) -> PersistedSession:
        if self.session is None:
            raise RuntimeError("No active session; call start_session() or resume_or_start() first")
        return self.session

    def _fold_timer_locked(self) -> None:
        assert self.session is not None
        self.session = recorder.apply_timer_state(self.session, self.engine.current_state(), self.clock.epoch_ms())

    def _save_locked(self) -> PersistedSession:
        assert self.session is not None
        self.session = self.store.save(self.session)
        # A failed write keeps the old autosave baseline so the next tick retries
        if self.store.last_write_ok:
            self.state.focused_at_last_save = self.session.timer.focused_time
            self.events.emit("session_saved", self.session)
        return self.session

    def _handle_tick(self, state: TimerState) -> None:
        with self._lock:
            if self.session is not None:
                self.session = recorder.apply_timer_state(self.session, state, self.clock.epoch_ms())
                every = self.cfg["storage"]["autosave_every_s"]
                if every and self.session.timer.focused_time - self.state.focused_at_last_save >= every:
                    self._save_locked()
        self.events.emit("tick", state)
        if self.on_tick is not None:
            self.on_tick(state)

    def _handle_visibility(self, is_visible: bool, away_seconds: Optional[int]) -> None:
        with self._lock:
            if self.session is not None:
                if is_visible:
                    interval = self.engine.monitor.last_interval() if self.engine.monitor else None
                    min_ms = self.engine.monitor.min_distraction_seconds * 1000 if self.engine.monitor else 0
                    if interval is not None and interval.away_ms >= min_ms:
                        self.session = recorder.record_distraction(
                            self.session, interval.left_at_epoch_ms, interval.returned_at_epoch_ms
                        )
                self._fold_timer_locked()
                # Backgrounded pages may never come back, so write on both edges
                self._save_locked()
        self.events.emit("visibility_change", {"visible": is_visible, "away_seconds": away_seconds})
        if self.on_visibility_change is not None:
            self.on_visibility_change(is_visible, away_seconds)
