"""Append-only conversation history."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from .attachments import Attachment

Role = Literal["user", "assistant"]


@dataclass(frozen=True)
class Message:
    """One chat turn entry. The attachment tuple is fixed at send time."""

    id: str
    role: Role
    content: str
    attachments: tuple[Attachment, ...] = ()


class MessageStore:
    """Ordered message history that only grows until a full reset."""

    def __init__(self) -> None:
        self._messages: list[Message] = []

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> tuple[Message, ...]:
        """Return an immutable snapshot of the history."""
        return tuple(self._messages)

    def append(self, message: Message) -> None:
        """Append a message at the end of the history."""
        if message.role not in ("user", "assistant"):
            raise ValueError(f"Unsupported message role {message.role!r}.")
        self._messages.append(message)

    def clear(self) -> None:
        """Drop the whole history (session reset only)."""
        self._messages.clear()

