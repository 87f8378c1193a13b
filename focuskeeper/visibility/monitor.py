from __future__ import annotations

"""VisibilityMonitor: turns foreground/background transitions into callbacks.

Every away interval adds its floored seconds to the away accumulator. Only
intervals at least `min_distraction_seconds` long count as distractions, so
quick flickers lower the focus score without inflating the distraction count.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Optional

from ..clock import Clock, default_clock, elapsed_reference_ms
from .source import Unsubscribe, VisibilitySource

logger = logging.getLogger(__name__)

DEFAULT_MIN_DISTRACTION_SECONDS = 3


@dataclass(frozen=True)
class LastDistraction:
    duration_seconds: int
    returned_at_epoch_ms: int

    def to_json(self) -> Dict[str, Any]:
        return {"duration": self.duration_seconds, "returnedAt": self.returned_at_epoch_ms}


@dataclass(frozen=True)
class AwayInterval:
    """One completed away interval, stamped on the wall clock at return."""

    left_at_epoch_ms: int
    returned_at_epoch_ms: int
    away_ms: int

    @property
    def away_seconds(self) -> int:
        return self.away_ms // 1000


@dataclass(frozen=True)
class VisibilityState:
    is_foreground: bool = True
    away_seconds_accumulated: int = 0
    distraction_count: int = 0
    last_distraction: Optional[LastDistraction] = field(default=None)

    def to_json(self) -> Dict[str, Any]:
        return {
            "isVisible": self.is_foreground,
            "awayTime": self.away_seconds_accumulated,
            "distractionCount": self.distraction_count,
            "lastDistraction": self.last_distraction.to_json() if self.last_distraction else None,
        }


class VisibilityMonitor:
    def __init__(
        self,
        source: VisibilitySource,
        on_became_hidden: Optional[Callable[[], None]] = None,
        on_became_visible: Optional[Callable[[int], None]] = None,
        *,
        min_distraction_seconds: int = DEFAULT_MIN_DISTRACTION_SECONDS,
        enabled: bool = True,
        clock: Optional[Clock] = None,
    ) -> None:
        if min_distraction_seconds < 0:
            raise ValueError("min_distraction_seconds must be >= 0")
        self.source = source
        self.on_became_hidden = on_became_hidden
        self.on_became_visible = on_became_visible
        self.min_distraction_seconds = int(min_distraction_seconds)
        self.clock = clock or default_clock()

        self._state = VisibilityState(is_foreground=self._read_foreground())
        # (monotonic reading, epoch ms) captured when the surface went hidden
        self._left_at: Optional[tuple[int, int]] = None
        self._last_interval: Optional[AwayInterval] = None
        self._unsubscribe: Optional[Unsubscribe] = None
        self._enabled = False
        self.set_enabled(enabled)

    # --- subscription lifecycle ---

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, flag: bool) -> None:
        flag = bool(flag)
        if flag == self._enabled:
            return
        self._enabled = flag
        if flag:
            self._left_at = None
            self._state = replace(self._state, is_foreground=self._read_foreground())
            self._unsubscribe = self.source.subscribe(self._handle_hidden, self._handle_visible)
        elif self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def close(self) -> None:
        self.set_enabled(False)

    # --- public accessors ---

    def current_state(self) -> VisibilityState:
        return self._state

    def reset_tracking(self) -> None:
        """Clear counters and re-read the current visibility."""
        self._left_at = None
        self._last_interval = None
        self._state = VisibilityState(is_foreground=self._read_foreground())

    def last_interval(self) -> Optional[AwayInterval]:
        return self._last_interval

    def left_at_epoch_ms(self) -> Optional[int]:
        """Epoch ms at which the surface went hidden, if it is away now."""
        return self._left_at[1] if self._left_at else None

    # --- transition handling ---

    def _read_foreground(self) -> bool:
        try:
            return bool(self.source.is_foreground())
        except Exception:
            logger.warning("Visibility source failed to report state; assuming foreground", exc_info=True)
            return True

    def _handle_hidden(self) -> None:
        if not self._enabled:
            return
        self._left_at = (elapsed_reference_ms(self.clock), self.clock.epoch_ms())
        self._state = replace(self._state, is_foreground=False)
        if self.on_became_hidden is not None:
            self.on_became_hidden()

    def _handle_visible(self) -> None:
        if not self._enabled:
            return
        left = self._left_at
        self._left_at = None
        self._last_interval = None
        if left is None:
            # Never saw the hidden edge (e.g. monitor started while hidden)
            self._state = replace(self._state, is_foreground=True)
            if self.on_became_visible is not None:
                self.on_became_visible(0)
            return

        away_ms = elapsed_reference_ms(self.clock) - left[0]
        if away_ms < 0:
            logger.debug("Negative away interval (%d ms) clamped to 0", away_ms)
            away_ms = 0
        away_seconds = away_ms // 1000
        returned_at = self.clock.epoch_ms()
        self._last_interval = AwayInterval(returned_at - away_ms, returned_at, away_ms)

        counts = away_ms >= self.min_distraction_seconds * 1000
        prev = self._state
        self._state = VisibilityState(
            is_foreground=True,
            away_seconds_accumulated=prev.away_seconds_accumulated + away_seconds,
            distraction_count=prev.distraction_count + (1 if counts else 0),
            last_distraction=LastDistraction(away_seconds, returned_at) if counts else prev.last_distraction,
        )
        if self.on_became_visible is not None:
            self.on_became_visible(away_seconds)


def observe(
    source: VisibilitySource,
    on_became_hidden: Optional[Callable[[], None]] = None,
    on_became_visible: Optional[Callable[[int], None]] = None,
    *,
    min_distraction_seconds: int = DEFAULT_MIN_DISTRACTION_SECONDS,
    enabled: bool = True,
    clock: Optional[Clock] = None,
) -> VisibilityMonitor:
    """Start observing `source` and return the monitor handle."""
    return VisibilityMonitor(
        source,
        on_became_hidden,
        on_became_visible,
        min_distraction_seconds=min_distraction_seconds,
        enabled=enabled,
        clock=clock,
    )
