from __future__ import annotations

"""Tiny pub/sub event bus for engine notifications."""

import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)


class EventBus:
    def __init__(self) -> None:
        self._subs: Dict[str, List[Callable[[Any], None]]] = {}

    def subscribe(self, event: str, handler: Callable[[Any], None]) -> Callable[[], None]:
        self._subs.setdefault(event, []).append(handler)

        def _unsubscribe() -> None:
            handlers = self._subs.get(event, [])
            if handler in handlers:
                handlers.remove(handler)

        return _unsubscribe

    def emit(self, event: str, payload: Any = None) -> None:
        # Copy so handlers may unsubscribe while being notified
        for h in list(self._subs.get(event, [])):
            try:
                h(payload)
            except Exception:
                logger.warning("Handler for event '%s' failed", event, exc_info=True)

    def has_subscribers(self, event: str) -> bool:
        return bool(self._subs.get(event))
