from __future__ import annotations

import logging
import uuid
from threading import RLock
from typing import Any, Callable

from ..storage import Store
from .session import Session


log = logging.getLogger(__name__)


class SessionRegistry:
    """Room code -> live session.

    ``session_kwargs(code)`` supplies the collaborators of a new session
    (emitter bound to the room, spawner, judge...), so sessions created here
    and sessions rebuilt from storage are wired the same way.
    """

    def __init__(self, store: Store, session_kwargs: Callable[[str], dict[str, Any]]):
        self.store = store
        self.session_kwargs = session_kwargs
        self._lock = RLock()
        self._sessions: dict[str, Session] = {}

    def create(self, code: str | None = None) -> Session:
        with self._lock:
            if code is None:
                code = uuid.uuid4().hex
                while code in self._sessions:
                    code = uuid.uuid4().hex
            elif code in self._sessions:
                return self._sessions[code]
            session = Session(code, store=self.store, **self.session_kwargs(code))
            self._sessions[code] = session
            log.info(f"[ROOM] created {code}")
            return session

    def get(self, code: str | None) -> Session | None:
        if not code:
            return None
        with self._lock:
            return self._sessions.get(code)

    def list(self) -> list[Session]:
        with self._lock:
            return list(self._sessions.values())

    def load_from_store(self) -> int:
        """Rebuild every saved room. Unreadable records are logged and skipped."""
        loaded = 0
        for code, raw in self.store.load_rooms():
            try:
                session = Session.from_record(code, raw, store=self.store, **self.session_kwargs(code))
            except (ValueError, TypeError, KeyError):
                log.exception(f"[REHYDRATE] {code} could not be restored")
                continue
            with self._lock:
                self._sessions[code] = session
            loaded += 1
        log.info(f"[REHYDRATE] restored {loaded} rooms")
        return loaded
