"""Lifecycle tracking for the session's background reply tasks."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

LOGGER = logging.getLogger(__name__)


class TaskManager:
    """Track named asyncio tasks so they can be awaited or torn down."""

    def __init__(self) -> None:
        self._named: dict[str, asyncio.Task[Any]] = {}

    def add(self, task: asyncio.Task[Any], name: str) -> None:
        """Register ``task`` under ``name``; the entry self-clears on completion."""
        self._named[name] = task

        def _forget(done: asyncio.Task[Any]) -> None:
            if self._named.get(name) is done:
                del self._named[name]

        task.add_done_callback(_forget)

    async def wait(self, name: str) -> None:
        """Await a named task if one is running; its own errors are not re-raised."""
        task = self._named.get(name)
        if task is None:
            return
        await asyncio.gather(task, return_exceptions=True)

    async def cancel_all(self) -> None:
        """Cancel every tracked task and await them all."""
        tasks = [t for t in self._named.values() if not t.done()]
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        if tasks:
            LOGGER.info(
                "tasks.cancelled",
                extra={"event": "tasks.cancelled", "count": len(tasks)},
            )
        self._named.clear()
