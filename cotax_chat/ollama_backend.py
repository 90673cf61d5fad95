"""Streaming client backed by a local Ollama host."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
import logging
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import httpx
from ollama import AsyncClient

from .attachments import Attachment
from .chat import ChatRequest, ReplyChunk
from .exceptions import RateLimitError, TransportError

if TYPE_CHECKING:
    from .message_store import Message

LOGGER = logging.getLogger(__name__)


class OllamaChatClient:
    """Adapts ``ollama.AsyncClient`` chat streaming to the session's client protocol.

    Image attachments are sent as base64 ``images`` on the new user turn,
    text attachments are inlined into its content, and PDFs are referenced by
    name since the chat endpoint cannot read them.
    """

    def __init__(
        self,
        host: str,
        model: str,
        system_prompt: str = "",
        timeout: int = 120,
        client: Any | None = None,
    ) -> None:
        self.host = host
        self.model = model
        self.system_prompt = system_prompt.strip()
        self._client = client if client is not None else AsyncClient(host=host, timeout=timeout)

    @staticmethod
    def _inline_content(text: str, attachments: Sequence[Attachment]) -> str:
        parts = [text]
        for attachment in attachments:
            if attachment.kind == "text":
                parts.append(f"[Attachment: {attachment.name}]\n{attachment.text_preview()}")
            elif attachment.kind == "pdf":
                parts.append(f"[PDF attachment: {attachment.name}]")
        return "\n\n".join(parts)

    @staticmethod
    def _images(attachments: Sequence[Attachment]) -> list[str]:
        images: list[str] = []
        for attachment in attachments:
            if attachment.kind == "image":
                _, _, payload = attachment.url.partition(",")
                images.append(payload)
        return images

    def build_messages(
        self, request: ChatRequest, history: Sequence[Message]
    ) -> list[dict[str, Any]]:
        """Translate history and the new turn into Ollama chat messages."""
        messages: list[dict[str, Any]] = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        for message in history:
            entry: dict[str, Any] = {
                "role": message.role,
                "content": self._inline_content(message.content, message.attachments),
            }
            images = self._images(message.attachments)
            if images:
                entry["images"] = images
            messages.append(entry)

        turn: dict[str, Any] = {
            "role": "user",
            "content": self._inline_content(request.text, request.attachments),
        }
        images = self._images(request.attachments)
        if images:
            turn["images"] = images
        messages.append(turn)
        return messages

    @staticmethod
    def _extract_chunk_text(chunk: Any) -> str:
        """Extract streamed token text from an SDK object or dict chunk."""
        message_obj = getattr(chunk, "message", None)
        if message_obj is not None:
            value = getattr(message_obj, "content", None)
            if isinstance(value, str):
                return value
        if isinstance(chunk, dict):
            message = chunk.get("message")
            if isinstance(message, dict):
                value = message.get("content")
                if isinstance(value, str):
                    return value
        return ""

    def _map_exception(self, exc: Exception) -> TransportError:
        if isinstance(exc, (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError)):
            return TransportError(f"Unable to connect to Ollama host {self.host}.")
        if getattr(exc, "status_code", None) == 429:
            return RateLimitError("You've been rate limited, please try again later!")
        lower_message = str(exc).lower()
        if "model" in lower_message and "not found" in lower_message:
            return TransportError(f"Model {self.model!r} was not found on {self.host}.")
        return TransportError(f"Failed to stream response from Ollama at {self.host}: {exc}")

    async def stream(
        self, request: ChatRequest, history: Sequence[Message]
    ) -> AsyncIterator[ReplyChunk]:
        messages = self.build_messages(request, history)
        try:
            response = await self._client.chat(
                model=self.model, messages=messages, stream=True
            )
            async for chunk in response:
                text = self._extract_chunk_text(chunk)
                if text:
                    yield ReplyChunk(kind="content", text=text)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001 - external API can fail in many ways.
            mapped = self._map_exception(exc)
            LOGGER.warning(
                "ollama.request.failed",
                extra={
                    "event": "ollama.request.failed",
                    "model": self.model,
                    "error_type": mapped.__class__.__name__,
                },
            )
            raise mapped from exc
        yield ReplyChunk(kind="finish", message_id=uuid4().hex)

