"""Event bus for presentation-side reactions to session state.

Usage:
    bus = EventBus()

    async def on_messages_changed(event):
        scroll_to(event.data["count"])

    bus.subscribe(MESSAGES_CHANGED, on_messages_changed)
    await bus.publish(MESSAGES_CHANGED, {"count": 3})
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
import logging
from typing import Any

LOGGER = logging.getLogger(__name__)

MESSAGES_CHANGED = "messages.changed"
REPLY_DELTA = "reply.delta"
STATE_CHANGED = "session.state_changed"
ATTACHMENTS_CHANGED = "attachments.changed"
NOTICE_ERROR = "notice.error"


@dataclass
class Event:
    """Event data container."""

    name: str
    data: dict[str, Any]
    source: str | None = None


class EventBus:
    """Publish/subscribe hub between the session core and its renderers.

    Handlers may be plain callables or coroutine functions. A failing handler
    is logged and does not stop delivery to the remaining handlers.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Callable]] = {}

    def subscribe(self, event_name: str, handler: Callable) -> None:
        """Register ``handler`` for ``event_name``."""
        self._subscribers.setdefault(event_name, []).append(handler)
        LOGGER.debug("Subscribed to event: %s", event_name)

    async def publish(
        self, event_name: str, data: dict[str, Any], source: str | None = None
    ) -> None:
        """Deliver an event to every subscriber in registration order."""
        event = Event(name=event_name, data=data, source=source)
        handlers = list(self._subscribers.get(event_name, []))
        if not handlers:
            return

        for handler in handlers:
            try:
                if asyncio.iscoroutinefunction(handler):
                    await handler(event)
                else:
                    handler(event)
            except Exception:
                LOGGER.exception(
                    "events.handler.failed",
                    extra={"event": "events.handler.failed", "event_name": event_name},
                )
