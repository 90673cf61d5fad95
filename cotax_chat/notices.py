"""The single user-facing error channel shared by the session components."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import logging

from .events import NOTICE_ERROR, EventBus
from .exceptions import CotaxChatError

LOGGER = logging.getLogger(__name__)

ErrorCallback = Callable[[str, str], None]


class Notifier:
    """Fan out ``report_error(kind, message)`` to the registered presenters.

    Reporting never raises and never blocks: callbacks run inline and the bus
    publication is scheduled on the running loop when there is one.
    """

    def __init__(self, bus: EventBus | None = None) -> None:
        self.bus = bus
        self._callbacks: list[ErrorCallback] = []
        self._pending: set[asyncio.Task[None]] = set()

    def on_error(self, callback: ErrorCallback) -> None:
        """Register a presenter for error notices."""
        self._callbacks.append(callback)

    def report_error(self, kind: str, message: str) -> None:
        """Surface one non-blocking error notice."""
        LOGGER.warning(
            "notice.error",
            extra={"event": "notice.error", "kind": kind, "notice": message},
        )
        for callback in list(self._callbacks):
            try:
                callback(kind, message)
            except Exception:
                LOGGER.exception(
                    "notice.callback.failed",
                    extra={"event": "notice.callback.failed", "kind": kind},
                )
        if self.bus is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(
            self.bus.publish(NOTICE_ERROR, {"kind": kind, "message": message})
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def report(self, exc: CotaxChatError) -> None:
        """Report a domain exception using its ``kind`` and message."""
        self.report_error(exc.kind, str(exc))
