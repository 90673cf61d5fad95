"""Tests for lock-protected session state transitions."""

from __future__ import annotations

import asyncio
import unittest

from cotax_chat.state import SessionState, StateManager


class StateManagerTests(unittest.IsolatedAsyncioTestCase):
    """Validate the two-state turn lifecycle."""

    async def test_can_submit_only_when_idle(self) -> None:
        manager = StateManager()
        self.assertTrue(await manager.can_submit())
        await manager.transition_to(SessionState.AWAITING_REPLY)
        self.assertFalse(await manager.can_submit())
        self.assertEqual(manager.current, SessionState.AWAITING_REPLY)
        await manager.transition_to(SessionState.IDLE)
        self.assertTrue(await manager.can_submit())

    async def test_transition_if_enforces_expected_state(self) -> None:
        manager = StateManager()
        changed = await manager.transition_if(
            SessionState.AWAITING_REPLY, SessionState.IDLE
        )
        self.assertFalse(changed)
        self.assertEqual(manager.current, SessionState.IDLE)

        changed = await manager.transition_if(
            SessionState.IDLE, SessionState.AWAITING_REPLY
        )
        self.assertTrue(changed)
        self.assertEqual(manager.current, SessionState.AWAITING_REPLY)

    async def test_lock_admits_a_single_claim(self) -> None:
        manager = StateManager()

        async def try_claim() -> bool:
            await asyncio.sleep(0)
            return await manager.transition_if(
                SessionState.IDLE, SessionState.AWAITING_REPLY
            )

        results = await asyncio.gather(*(try_claim() for _ in range(10)))
        self.assertEqual(results.count(True), 1)


if __name__ == "__main__":
    unittest.main()
