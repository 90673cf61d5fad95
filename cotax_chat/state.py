"""Session state machine and lock-protected transitions."""

from __future__ import annotations

import asyncio
from enum import Enum


class SessionState(str, Enum):
    """Finite state machine for the turn lifecycle."""

    IDLE = "IDLE"
    AWAITING_REPLY = "AWAITING_REPLY"


class StateManager:
    """Manage state transitions with async lock semantics."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._state = SessionState.IDLE

    @property
    def current(self) -> SessionState:
        """Unlocked read for synchronous observers such as renderers."""
        return self._state

    async def transition_to(self, new_state: SessionState) -> SessionState:
        """Transition to a new state and return it."""
        async with self._lock:
            self._state = new_state
            return self._state

    async def transition_if(
        self,
        expected_state: SessionState,
        new_state: SessionState,
    ) -> bool:
        """Transition only when current state matches expected state."""
        async with self._lock:
            if self._state != expected_state:
                return False
            self._state = new_state
            return True

    async def can_submit(self) -> bool:
        """Return True when a new turn may start."""
        async with self._lock:
            return self._state == SessionState.IDLE
