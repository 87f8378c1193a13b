from __future__ import annotations

"""TimerEngine: dual-bucket (focused/away) session timer.

States are Stopped, Running-Paused and Running-Active. Two independent
things can hold a running timer paused: the caller (`pause()`, e.g. a UI
pause button) and the visibility monitor (surface hidden). Returning to the
foreground lifts only the visibility pause, so a caller's explicit pause
survives a background/foreground cycle.

Focused time accrues from measured elapsed time rather than tick counts:
each tick adds the whole seconds since the last accounted instant and keeps
the sub-second remainder for the next tick.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from ..clock import Clock, default_clock, elapsed_reference_ms
from ..visibility.monitor import DEFAULT_MIN_DISTRACTION_SECONDS, VisibilityMonitor, VisibilityState
from ..visibility.source import VisibilitySource
from .scheduler import IntervalScheduler, ThreadingIntervalScheduler, TickHandle

logger = logging.getLogger(__name__)


def compute_focus_score(focused_seconds: int, away_seconds: int) -> int:
    """Percentage of total time that was focused, rounded half up."""
    total = focused_seconds + away_seconds
    if total <= 0:
        return 100
    return (200 * focused_seconds + total) // (2 * total)


@dataclass(frozen=True)
class TimerState:
    focused_seconds: int = 0
    away_seconds: int = 0
    is_paused: bool = True
    is_running: bool = False

    @property
    def total_seconds(self) -> int:
        return self.focused_seconds + self.away_seconds

    @property
    def focus_score(self) -> int:
        return compute_focus_score(self.focused_seconds, self.away_seconds)

    def to_json(self) -> Dict[str, Any]:
        return {
            "focusedTime": self.focused_seconds,
            "awayTime": self.away_seconds,
            "totalTime": self.total_seconds,
            "isPaused": self.is_paused,
            "isRunning": self.is_running,
            "focusScore": self.focus_score,
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "TimerState":
        return cls(
            focused_seconds=max(0, int(data.get("focusedTime", 0))),
            away_seconds=max(0, int(data.get("awayTime", 0))),
            is_paused=bool(data.get("isPaused", True)),
            is_running=bool(data.get("isRunning", False)),
        )


class TimerEngine:
    def __init__(
        self,
        visibility_source: Optional[VisibilitySource] = None,
        *,
        clock: Optional[Clock] = None,
        scheduler: Optional[IntervalScheduler] = None,
        tick_interval_s: float = 1.0,
        auto_start: bool = True,
        min_distraction_seconds: int = DEFAULT_MIN_DISTRACTION_SECONDS,
        visibility_enabled: bool = True,
        on_tick: Optional[Callable[[TimerState], None]] = None,
        on_visibility_change: Optional[Callable[[bool, Optional[int]], None]] = None,
        initial: Optional[TimerState] = None,
    ) -> None:
        if tick_interval_s <= 0:
            raise ValueError("tick_interval_s must be > 0")
        self.clock = clock or default_clock()
        self.scheduler = scheduler or ThreadingIntervalScheduler()
        self.tick_interval_s = float(tick_interval_s)
        self.auto_start = bool(auto_start)
        self.visibility_enabled = bool(visibility_enabled)
        self.on_tick = on_tick
        self.on_visibility_change = on_visibility_change

        self._lock = threading.RLock()
        self._focused = max(0, initial.focused_seconds) if initial else 0
        self._away = max(0, initial.away_seconds) if initial else 0
        self._running = False
        self._user_paused = False
        self._hidden = False
        self._last_tick = elapsed_reference_ms(self.clock)
        self._tick_handle: Optional[TickHandle] = None

        self.monitor: Optional[VisibilityMonitor] = None
        if visibility_source is not None:
            self.monitor = VisibilityMonitor(
                visibility_source,
                self._on_became_hidden,
                self._on_became_visible,
                min_distraction_seconds=min_distraction_seconds,
                enabled=False,
                clock=self.clock,
            )

    # --- state ---

    def _active(self) -> bool:
        return self._running and not self._user_paused and not self._hidden

    def current_state(self) -> TimerState:
        with self._lock:
            return TimerState(
                focused_seconds=self._focused,
                away_seconds=self._away,
                is_paused=not self._active(),
                is_running=self._running,
            )

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_paused(self) -> bool:
        return not self._active()

    # --- lifecycle ---

    def start(self) -> None:
        with self._lock:
            if self._active():
                self._accrue()
            self._running = True
            self._user_paused = False
            self._enable_visibility()
            self._last_tick = elapsed_reference_ms(self.clock)
            self._sync_ticker()

    def stop(self) -> None:
        with self._lock:
            if self._active():
                self._accrue()
            self._running = False
            self._user_paused = False
            self._hidden = False
            self._disable_visibility()
            self._sync_ticker()

    def pause(self) -> None:
        with self._lock:
            if not self._running:
                return
            if self._active():
                self._accrue()
            self._user_paused = True
            self._sync_ticker()

    def resume(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._user_paused = False
            self._last_tick = elapsed_reference_ms(self.clock)
            self._sync_ticker()

    def reset(self, initial: Optional[TimerState] = None) -> None:
        """Reinitialize counters and return to Running-Active.

        With `auto_start` disabled the engine lands in Running-Paused and
        waits for `resume()`.
        """
        with self._lock:
            self._focused = max(0, initial.focused_seconds) if initial else 0
            self._away = max(0, initial.away_seconds) if initial else 0
            self._running = True
            self._user_paused = not self.auto_start
            if self.monitor is not None:
                self.monitor.reset_tracking()
            self._enable_visibility()
            self._last_tick = elapsed_reference_ms(self.clock)
            self._sync_ticker()

    def restore_from_state(self, state: TimerState) -> None:
        """Load persisted buckets; lifecycle flags stay as they are."""
        with self._lock:
            self._focused = max(0, int(state.focused_seconds))
            self._away = max(0, int(state.away_seconds))
            self._last_tick = elapsed_reference_ms(self.clock)

    def snapshot(self, start_time_ms: int):
        """Buckets in the persisted timer shape, stamped with the wall clock."""
        from ..session.schema import TimerSnapshot  # session imports timer

        with self._lock:
            return TimerSnapshot(
                start_time=int(start_time_ms),
                focused_time=self._focused,
                away_time=self._away,
                last_active_time=self.clock.epoch_ms(),
            )

    def restore_from_snapshot(self, snapshot) -> None:
        self.restore_from_state(TimerState(focused_seconds=snapshot.focused_time, away_seconds=snapshot.away_time))

    def credit(self, focused_seconds: int = 0, away_seconds: int = 0) -> None:
        """Add time recorded outside the engine's own ticks and visibility events."""
        with self._lock:
            self._focused += max(0, int(focused_seconds))
            self._away += max(0, int(away_seconds))

    def dispose(self) -> None:
        self.stop()
        if self.monitor is not None:
            self.monitor.close()

    # --- ticking ---

    def _sync_ticker(self) -> None:
        if self._active():
            if self._tick_handle is None:
                self._tick_handle = self.scheduler.start(self.tick_interval_s, self._tick)
        elif self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None

    def _accrue(self) -> int:
        now = elapsed_reference_ms(self.clock)
        if now < self._last_tick:
            logger.debug("Clock moved backwards by %d ms; re-anchoring tick reference", self._last_tick - now)
            self._last_tick = now
            return 0
        elapsed = (now - self._last_tick) // 1000
        if elapsed > 0:
            self._focused += elapsed
            self._last_tick += elapsed * 1000
        return elapsed

    def _tick(self) -> None:
        with self._lock:
            if not self._active():
                return
            if self._accrue() <= 0:
                return
            state = self.current_state()
        self._notify_tick(state)

    def _notify_tick(self, state: TimerState) -> None:
        if self.on_tick is None:
            return
        try:
            self.on_tick(state)
        except Exception:
            logger.warning("on_tick hook failed", exc_info=True)

    # --- visibility ---

    def _enable_visibility(self) -> None:
        if self.monitor is None or not self.visibility_enabled:
            self._hidden = False
            return
        self.monitor.set_enabled(True)
        self._hidden = not self.monitor.current_state().is_foreground

    def _disable_visibility(self) -> None:
        if self.monitor is not None:
            self.monitor.set_enabled(False)

    def visibility_state(self) -> Optional[VisibilityState]:
        return self.monitor.current_state() if self.monitor is not None else None

    def _on_became_hidden(self) -> None:
        with self._lock:
            if self._active():
                self._accrue()
            self._hidden = True
            self._sync_ticker()
        self._notify_visibility(False, None)

    def _on_became_visible(self, away_seconds: int) -> None:
        with self._lock:
            self._away += max(0, int(away_seconds))
            self._hidden = False
            if self._running and not self._user_paused:
                self._last_tick = elapsed_reference_ms(self.clock)
            self._sync_ticker()
        self._notify_visibility(True, away_seconds)

    def _notify_visibility(self, is_visible: bool, away_seconds: Optional[int]) -> None:
        if self.on_visibility_change is None:
            return
        try:
            self.on_visibility_change(is_visible, away_seconds)
        except Exception:
            logger.warning("on_visibility_change hook failed", exc_info=True)
