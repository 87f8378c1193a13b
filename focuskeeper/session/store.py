from __future__ import annotations

"""SessionStore: the durable slot holding the one active session snapshot.

No fault in here reaches the caller. Failed writes are logged and the
in-memory session stays authoritative; unreadable, foreign or stale
snapshots all read back as "no session", which callers handle by starting
fresh.
"""

import logging
from typing import Optional

from pydantic import ValidationError

from ..clock import Clock, default_clock
from .backends import PersistentStore
from .schema import PersistedSession

logger = logging.getLogger(__name__)

STORAGE_KEY = "focuskeeper_active_session"
STALE_AFTER_MS = 24 * 60 * 60 * 1000


class SessionStore:
    def __init__(
        self,
        backend: PersistentStore,
        *,
        key: str = STORAGE_KEY,
        stale_after_ms: int = STALE_AFTER_MS,
        clock: Optional[Clock] = None,
    ) -> None:
        if stale_after_ms <= 0:
            raise ValueError("stale_after_ms must be > 0")
        self.backend = backend
        self.key = key
        self.stale_after_ms = int(stale_after_ms)
        self.clock = clock or default_clock()
        # Outcome of the most recent save; None until the first one
        self.last_write_ok: Optional[bool] = None

    def save(self, session: PersistedSession) -> PersistedSession:
        """Stamp `last_saved_at` and overwrite the slot.

        Returns the stamped snapshot whether or not the write succeeded;
        `last_write_ok` tells which.
        """
        now = self.clock.epoch_ms()
        stamped = session.model_copy(update={"last_saved_at": max(now, session.created_at)})
        try:
            self.backend.set(self.key, stamped.to_json())
        except Exception:
            logger.warning("Failed to save session %s", session.session_id, exc_info=True)
            self.last_write_ok = False
        else:
            self.last_write_ok = True
        return stamped

    def load(self, learner_id: Optional[str] = None) -> Optional[PersistedSession]:
        try:
            raw = self.backend.get(self.key)
        except Exception:
            logger.warning("Failed to read session slot '%s'", self.key, exc_info=True)
            return None
        if not raw:
            return None

        try:
            session = PersistedSession.from_json(raw)
        except (ValidationError, ValueError):
            logger.warning("Discarding unreadable session snapshot in '%s'", self.key, exc_info=True)
            return None

        if learner_id and session.learner_id != learner_id:
            return None

        age = self.clock.epoch_ms() - session.last_saved_at
        if age > self.stale_after_ms:
            logger.info("Evicting stale session %s (last saved %d ms ago)", session.session_id, age)
            self.clear()
            return None
        return session

    def clear(self) -> None:
        try:
            self.backend.delete(self.key)
        except Exception:
            logger.warning("Failed to clear session slot '%s'", self.key, exc_info=True)

    def has_active(self, learner_id: str) -> bool:
        return self.load(learner_id) is not None
