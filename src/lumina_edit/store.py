from __future__ import annotations

import logging
import time
from dataclasses import asdict
from typing import Any, Callable

from lumina_edit.config import settings
from lumina_edit.controller import SessionController
from lumina_edit.providers.base import GatewayProvider

logger = logging.getLogger(__name__)


class SessionStore:
    """
    In-memory registry of editing sessions. Nothing outlives the process.

    Each session holds its images and history as data URLs, so sessions that
    nobody has touched for `idle_seconds` are evicted whenever a new session
    is created. Sessions with requests still in flight are kept.
    """

    def __init__(
        self,
        provider: GatewayProvider | None = None,
        idle_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.provider = provider
        self.idle_seconds = settings.session_idle_seconds if idle_seconds is None else idle_seconds
        self._clock = clock
        self._sessions: dict[str, SessionController] = {}
        self._last_seen: dict[str, float] = {}

    def create_session(self) -> SessionController:
        self.evict_idle()
        controller = SessionController(provider=self.provider)
        self._sessions[controller.session_id] = controller
        self._last_seen[controller.session_id] = self._clock()
        return controller

    def get(self, session_id: str) -> SessionController:
        """Return a session or raise KeyError if missing."""
        controller = self._sessions.get(session_id)
        if controller is None:
            raise KeyError(f"Session {session_id} not found")
        self._last_seen[session_id] = self._clock()
        return controller

    def list_sessions(self) -> list[SessionController]:
        return list(self._sessions.values())

    def delete_session(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        self._last_seen.pop(session_id, None)

    def evict_idle(self) -> list[str]:
        if not self.idle_seconds or self.idle_seconds <= 0:
            return []
        cutoff = self._clock() - self.idle_seconds
        evicted = [
            sid
            for sid, controller in self._sessions.items()
            if self._last_seen.get(sid, 0.0) < cutoff and not controller.pending
        ]
        for sid in evicted:
            self.delete_session(sid)
        if evicted:
            logger.info("evicted %d idle sessions", len(evicted))
        return evicted


def session_snapshot(controller: SessionController) -> dict[str, Any]:
    state = controller.state
    data = asdict(state)
    data["history"] = [asdict(h) for h in state.history]
    data["suggestions"] = [asdict(s) for s in state.suggestions]
    data["suggestion_previews"] = {k: asdict(v) for k, v in state.suggestion_previews.items()}
    data["session_id"] = controller.session_id
    data["created_at"] = controller.created_at
    data["pending"] = [list(k) for k in controller.pending]
    return data
