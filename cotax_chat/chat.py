"""Streaming chat transport: request shape, reply chunks, and the HTTP client."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
import json
import logging
from typing import TYPE_CHECKING, Any, Literal, Protocol

import httpx

from .attachments import Attachment
from .exceptions import RateLimitError, TransportError

if TYPE_CHECKING:
    from .message_store import Message

LOGGER = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "You've been rate limited, please try again later!"


@dataclass(frozen=True)
class ChatRequest:
    """One outgoing user turn: instruction text plus encoded attachments."""

    text: str
    attachments: tuple[Attachment, ...] = field(default_factory=tuple)
    message_id: str = ""

    def to_payload(self) -> dict[str, Any]:
        """Wire form; ``attachments`` is present only when there are any."""
        payload: dict[str, Any] = {"text": self.text}
        if self.attachments:
            payload["attachments"] = [a.to_payload() for a in self.attachments]
        return payload


@dataclass
class ReplyChunk:
    """A single typed chunk yielded while an assistant reply streams in."""

    kind: Literal["content", "finish"]
    text: str = ""
    message_id: str | None = None


class StreamingClient(Protocol):
    """Turns a chat request into an incremental assistant reply."""

    def stream(
        self, request: ChatRequest, history: Sequence[Message]
    ) -> AsyncIterator[ReplyChunk]:
        """Yield content chunks, then one ``finish`` chunk.

        Raises:
            TransportError: On backend or connectivity failure.
        """
        ...


def parse_stream_part(line: str) -> tuple[str, Any] | None:
    """Split one data-stream protocol line (``<code>:<json>``).

    Returns None for blank or malformed lines.
    """
    code, sep, raw = line.partition(":")
    if not sep or not code:
        return None
    try:
        return code, json.loads(raw)
    except json.JSONDecodeError:
        LOGGER.debug("Ignoring malformed stream part: %r", line)
        return None


class HttpChatClient:
    """Client for a chat route that answers with the line-based data stream.

    Each response line is ``<code>:<json>``: ``0`` carries a text fragment,
    ``3`` an error, ``f`` the step start with the backend message id, and
    ``d`` the finish marker. Other parts are ignored.
    """

    def __init__(
        self,
        base_url: str,
        chat_path: str = "/api/chat",
        timeout: float = 120,
        retries: int = 2,
        retry_backoff_seconds: float = 0.5,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.chat_path = chat_path
        self.retries = retries
        self.retry_backoff_seconds = retry_backoff_seconds
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.chat_path}"

    async def aclose(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _message_payload(
        message_id: str, role: str, content: str, attachments: Sequence[Attachment]
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": message_id, "role": role, "content": content}
        if attachments:
            payload["experimental_attachments"] = [a.to_payload() for a in attachments]
        return payload

    def build_body(
        self, request: ChatRequest, history: Sequence[Message]
    ) -> dict[str, Any]:
        """Full conversation body: prior history plus the new user turn."""
        messages = [
            self._message_payload(m.id, m.role, m.content, m.attachments)
            for m in history
        ]
        turn = request.to_payload()
        entry: dict[str, Any] = {
            "id": request.message_id or f"pending-{len(messages)}",
            "role": "user",
            "content": turn["text"],
        }
        if "attachments" in turn:
            entry["experimental_attachments"] = turn["attachments"]
        messages.append(entry)
        return {"messages": messages}

    def _map_exception(self, exc: Exception) -> TransportError:
        if isinstance(exc, httpx.HTTPStatusError):
            status = exc.response.status_code
            if status == 429:
                return RateLimitError(RATE_LIMIT_MESSAGE)
            return TransportError(f"Chat backend returned HTTP {status}.")
        if isinstance(exc, httpx.TimeoutException):
            return TransportError(f"Chat backend at {self.base_url} timed out.")
        if isinstance(exc, httpx.TransportError):
            return TransportError(f"Unable to connect to chat backend at {self.base_url}.")
        return TransportError(f"Failed to stream reply from {self.base_url}: {exc}")

    async def stream(
        self, request: ChatRequest, history: Sequence[Message]
    ) -> AsyncIterator[ReplyChunk]:
        body = self.build_body(request, history)
        started = False
        for attempt in range(self.retries + 1):
            try:
                async with self._client.stream("POST", self.url, json=body) as response:
                    if response.status_code >= 400:
                        await response.aread()
                        response.raise_for_status()
                    message_id: str | None = None
                    async for line in response.aiter_lines():
                        part = parse_stream_part(line)
                        if part is None:
                            continue
                        code, value = part
                        if code == "0" and isinstance(value, str):
                            started = True
                            yield ReplyChunk(kind="content", text=value)
                        elif code == "3":
                            raise TransportError(str(value))
                        elif code == "f" and isinstance(value, dict):
                            candidate = value.get("messageId")
                            if isinstance(candidate, str) and candidate:
                                message_id = candidate
                    yield ReplyChunk(kind="finish", message_id=message_id)
                    return
            except TransportError:
                raise
            except asyncio.CancelledError:
                LOGGER.info(
                    "chat.request.cancelled",
                    extra={"event": "chat.request.cancelled"},
                )
                raise
            except Exception as exc:  # noqa: BLE001 - transport can fail in many ways.
                mapped = self._map_exception(exc)
                retryable = (
                    isinstance(exc, httpx.TransportError)
                    and not started
                    and attempt < self.retries
                )
                LOGGER.warning(
                    "chat.request.failed",
                    extra={
                        "event": "chat.request.failed",
                        "attempt": attempt + 1,
                        "error_type": mapped.__class__.__name__,
                        "will_retry": retryable,
                    },
                )
                if not retryable:
                    raise mapped from exc
                await asyncio.sleep(self.retry_backoff_seconds * (attempt + 1))
