from __future__ import annotations

"""Periodic tick sources for the TimerEngine.

A scheduler calls `callback` every `interval_s` seconds until the returned
handle is cancelled. The engine never relies on ticks arriving on time; each
tick measures real elapsed time, so late or coalesced ticks lose nothing.
"""

import asyncio
import logging
import threading
from typing import Callable, List, Optional, Protocol

logger = logging.getLogger(__name__)


class TickHandle(Protocol):
    def cancel(self) -> None: ...


class IntervalScheduler(Protocol):
    def start(self, interval_s: float, callback: Callable[[], None]) -> TickHandle: ...


class _ThreadingTick:
    def __init__(self, interval_s: float, callback: Callable[[], None]) -> None:
        self.interval_s = float(interval_s)
        self.callback = callback
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._cancelled = False

    def arm(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._timer = threading.Timer(self.interval_s, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _fire(self) -> None:
        if self._cancelled:
            return
        try:
            self.callback()
        except Exception:
            logger.warning("Tick callback failed", exc_info=True)
        finally:
            self.arm()

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
            if self._timer:
                self._timer.cancel()
                self._timer = None


class ThreadingIntervalScheduler:
    """Re-arming `threading.Timer`; callbacks run on a daemon timer thread."""

    def start(self, interval_s: float, callback: Callable[[], None]) -> TickHandle:
        tick = _ThreadingTick(interval_s, callback)
        tick.arm()
        return tick


class _AsyncioTick:
    def __init__(self, loop: asyncio.AbstractEventLoop, interval_s: float, callback: Callable[[], None]) -> None:
        self.loop = loop
        self.interval_s = float(interval_s)
        self.callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None
        self._cancelled = False

    def arm(self) -> None:
        if not self._cancelled:
            self._handle = self.loop.call_later(self.interval_s, self._fire)

    def _fire(self) -> None:
        try:
            self.callback()
        except Exception:
            logger.warning("Tick callback failed", exc_info=True)
        finally:
            self.arm()

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class AsyncioIntervalScheduler:
    """Schedules ticks on an asyncio loop, sharing the host's single thread."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def start(self, interval_s: float, callback: Callable[[], None]) -> TickHandle:
        loop = self._loop or asyncio.get_running_loop()
        tick = _AsyncioTick(loop, interval_s, callback)
        tick.arm()
        return tick


class _ManualTick:
    def __init__(self, owner: "ManualScheduler", interval_s: float, callback: Callable[[], None]) -> None:
        self.owner = owner
        self.interval_s = interval_s
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True
        if self in self.owner._ticks:
            self.owner._ticks.remove(self)


class ManualScheduler:
    """Fires ticks only when `fire()` is called.

    For hosts that drive their own loop and for deterministic tests.
    """

    def __init__(self) -> None:
        self._ticks: List[_ManualTick] = []

    def start(self, interval_s: float, callback: Callable[[], None]) -> TickHandle:
        tick = _ManualTick(self, interval_s, callback)
        self._ticks.append(tick)
        return tick

    @property
    def active(self) -> int:
        return len(self._ticks)

    def fire(self, times: int = 1) -> None:
        for _ in range(times):
            for tick in list(self._ticks):
                if not tick.cancelled:
                    tick.callback()


def make_scheduler(name: str) -> IntervalScheduler:
    if name == "threading":
        return ThreadingIntervalScheduler()
    if name == "asyncio":
        return AsyncioIntervalScheduler()
    if name == "manual":
        return ManualScheduler()
    raise ValueError(f"Unknown scheduler: {name}")
