from __future__ import annotations

"""Clock sources.

Elapsed time is measured on a monotonic millisecond counter; wall-clock
epoch milliseconds are used only for timestamps that get persisted.
`time.monotonic` is always available on CPython, so the wall-clock fallback
only matters for custom clocks that return None from `monotonic_ms`. In that
case a system clock change during a session corrupts elapsed time; this is
accepted, not corrected.
"""

import time
from typing import Optional, Protocol


class Clock(Protocol):
    def epoch_ms(self) -> int: ...

    def monotonic_ms(self) -> Optional[int]: ...


class SystemClock:
    def epoch_ms(self) -> int:
        return int(time.time() * 1000)

    def monotonic_ms(self) -> Optional[int]:
        return int(time.monotonic() * 1000)


class ManualClock:
    """Clock advanced explicitly by the host or by tests.

    Both readings move together; `jump_wall` shifts only the wall clock to
    model a system clock change.
    """

    def __init__(self, start_epoch_ms: int = 1_700_000_000_000) -> None:
        self._epoch = int(start_epoch_ms)
        self._mono = 0

    def epoch_ms(self) -> int:
        return self._epoch

    def monotonic_ms(self) -> Optional[int]:
        return self._mono

    def advance(self, seconds: float = 0.0, ms: int = 0) -> None:
        delta = int(round(seconds * 1000)) + int(ms)
        if delta < 0:
            raise ValueError("ManualClock cannot run backwards; use jump_wall")
        self._epoch += delta
        self._mono += delta

    def jump_wall(self, ms: int) -> None:
        self._epoch += int(ms)


class WallClockOnly:
    """Wraps a clock and hides its monotonic source."""

    def __init__(self, inner: Clock) -> None:
        self._inner = inner

    def epoch_ms(self) -> int:
        return self._inner.epoch_ms()

    def monotonic_ms(self) -> Optional[int]:
        return None


def elapsed_reference_ms(clock: Clock) -> int:
    """Reading used for elapsed-time arithmetic: monotonic if available."""
    mono = clock.monotonic_ms()
    if mono is None:
        return clock.epoch_ms()
    return mono


_default_clock: Optional[SystemClock] = None


def default_clock() -> SystemClock:
    global _default_clock
    if _default_clock is None:
        _default_clock = SystemClock()
    return _default_clock
