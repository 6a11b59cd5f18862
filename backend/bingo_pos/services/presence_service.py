"""
Customer presence tracker.

Counts customers currently on the ordering page, by state. In-memory and
per-process: restarting the server or running several workers gives each
its own count.
"""

from __future__ import annotations

import threading
import time
from typing import Callable

from flask import current_app

PRESENCE_STATES = ("consultando", "pagando", "completado")
STATE_INACTIVE = "inactive"


class PresenceTracker:
    def __init__(self, timeout_seconds: float = 30, clock: Callable[[], float] = time.monotonic):
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self._sessions: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def _purge(self, now: float) -> None:
        expired = [sid for sid, (_, seen) in self._sessions.items() if now - seen > self.timeout_seconds]
        for sid in expired:
            del self._sessions[sid]

    def update(self, session_id: str, state: str | None) -> int:
        """
        Record a heartbeat. 'inactive' drops the session; unknown states are
        ignored. Returns the number of live sessions.
        """
        with self._lock:
            now = self._clock()
            self._purge(now)
            if state == STATE_INACTIVE:
                self._sessions.pop(session_id, None)
            elif state in PRESENCE_STATES:
                self._sessions[session_id] = (state, now)
            return len(self._sessions)

    def snapshot(self) -> dict:
        with self._lock:
            self._purge(self._clock())
            states = {s: 0 for s in PRESENCE_STATES}
            for state, _ in self._sessions.values():
                states[state] += 1
            return {"total": len(self._sessions), "states": states}


def init_app(app) -> PresenceTracker:
    tracker = PresenceTracker(app.config.get("PRESENCE_TIMEOUT_SECONDS", 30))
    app.extensions["presence"] = tracker
    return tracker


def get_tracker() -> PresenceTracker:
    return current_app.extensions["presence"]
