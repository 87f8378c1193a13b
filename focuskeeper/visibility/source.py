from __future__ import annotations

"""Foreground/background signal sources.

A source is the host platform's "is the session surface foregrounded"
signal, reduced to two operations: read the current value and subscribe to
transitions. Subscribing returns the function that undoes it.
"""

from typing import Callable, Protocol

from ..app.events import EventBus

Unsubscribe = Callable[[], None]


class VisibilitySource(Protocol):
    def is_foreground(self) -> bool: ...

    def subscribe(self, on_hidden: Callable[[], None], on_visible: Callable[[], None]) -> Unsubscribe: ...


class ManualVisibilitySource:
    """In-process source driven by `set_foreground`.

    Hosts that learn about focus changes from their own UI toolkit push them
    here. Repeated calls with the same value are not transitions and emit
    nothing.
    """

    def __init__(self, foreground: bool = True) -> None:
        self._foreground = bool(foreground)
        self._bus = EventBus()

    def is_foreground(self) -> bool:
        return self._foreground

    def subscribe(self, on_hidden: Callable[[], None], on_visible: Callable[[], None]) -> Unsubscribe:
        off_hidden = self._bus.subscribe("hidden", lambda _payload: on_hidden())
        off_visible = self._bus.subscribe("visible", lambda _payload: on_visible())

        def _unsubscribe() -> None:
            off_hidden()
            off_visible()

        return _unsubscribe

    def set_foreground(self, foreground: bool) -> None:
        foreground = bool(foreground)
        if foreground == self._foreground:
            return
        self._foreground = foreground
        self._bus.emit("visible" if foreground else "hidden")

    def hide(self) -> None:
        self.set_foreground(False)

    def show(self) -> None:
        self.set_foreground(True)

    def has_subscribers(self) -> bool:
        return self._bus.has_subscribers("hidden") or self._bus.has_subscribers("visible")
