"""Session controller: message history, draft input, and the submit protocol."""

from __future__ import annotations

import asyncio
import logging
from uuid import uuid4

from .attachments import AttachmentManager, PendingFile
from .chat import ChatRequest, StreamingClient
from .events import MESSAGES_CHANGED, REPLY_DELTA, STATE_CHANGED, EventBus
from .exceptions import (
    CotaxChatError,
    EmptyInputError,
    EncodingError,
    SessionBusyError,
    TransportError,
)
from .message_store import Message, MessageStore
from .notices import ErrorCallback, Notifier
from .state import SessionState, StateManager
from .task_manager import TaskManager

LOGGER = logging.getLogger(__name__)

DEFAULT_GREETING = "Hi, I'm Cotax, and I'll be your personal tax assistant today!"
GREETING_ID = "greeting"

EMPTY_INPUT_MESSAGE = "Please provide text instructions along with your image."
BUSY_MESSAGE = "Please wait for the current reply to finish before sending another message."
EMPTY_REPLY_MESSAGE = "The assistant returned an empty reply. Please try again."

_REPLY_TASK = "active_reply"


class SessionController:
    """Owns one chat session and turns user submissions into streamed replies.

    Only this class appends to the message history. Staged files in the
    submitted snapshot are discarded at submission time; the staged list is
    otherwise mutated only through the ``AttachmentManager``. At most one
    reply is in flight: a submission made while ``AWAITING_REPLY`` is
    rejected, never queued.
    """

    def __init__(
        self,
        client: StreamingClient,
        attachments: AttachmentManager | None = None,
        *,
        greeting: str = DEFAULT_GREETING,
        bus: EventBus | None = None,
        notifier: Notifier | None = None,
        state_manager: StateManager | None = None,
        task_manager: TaskManager | None = None,
    ) -> None:
        self.client = client
        self.bus = bus or EventBus()
        self.notifier = notifier or Notifier(self.bus)
        self.attachments = attachments or AttachmentManager(self.notifier, self.bus)
        self.greeting = greeting
        self.state_manager = state_manager or StateManager()
        self.task_manager = task_manager or TaskManager()
        self.store = MessageStore()
        self._draft = ""
        self._streaming_text = ""

    # -- observation -----------------------------------------------------

    @property
    def messages(self) -> tuple[Message, ...]:
        return self.store.messages

    @property
    def draft(self) -> str:
        return self._draft

    @property
    def state(self) -> SessionState:
        return self.state_manager.current

    @property
    def is_loading(self) -> bool:
        return self.state_manager.current == SessionState.AWAITING_REPLY

    @property
    def streaming_text(self) -> str:
        """Assistant content received so far for the in-flight reply."""
        return self._streaming_text

    @property
    def pending_attachments(self) -> tuple[PendingFile, ...]:
        return self.attachments.pending

    def on_error(self, callback: ErrorCallback) -> None:
        """Register a presenter for error notices."""
        self.notifier.on_error(callback)

    def report_error(self, kind: str, message: str) -> None:
        self.notifier.report_error(kind, message)

    # -- input -----------------------------------------------------------

    def set_draft(self, text: str) -> None:
        """Replace the draft input. Takes effect before this call returns."""
        self._draft = text

    async def activate(self) -> None:
        """Seed an empty history with the assistant greeting."""
        if len(self.store):
            return
        await self._append(Message(id=GREETING_ID, role="assistant", content=self.greeting))

    async def submit(self, text: str | None = None) -> Message | None:
        """Send the draft (or ``text``) with every staged attachment.

        Returns:
            The appended user message, or None when the submission was
            rejected. Every rejection is reported through the notice channel.
        """
        if text is not None:
            self.set_draft(text)
        draft = self._draft

        if not draft.strip():
            self._reject(EmptyInputError(EMPTY_INPUT_MESSAGE))
            return None

        if not await self.state_manager.transition_if(
            SessionState.IDLE, SessionState.AWAITING_REPLY
        ):
            self._reject(SessionBusyError(BUSY_MESSAGE))
            return None

        staged = self.attachments.pending
        try:
            encoded = await self.attachments.transform_batch(staged)
        except EncodingError as exc:
            await self.state_manager.transition_to(SessionState.IDLE)
            self._reject(exc)
            return None

        message = Message(
            id=uuid4().hex,
            role="user",
            content=draft.strip(),
            attachments=tuple(encoded),
        )
        request = ChatRequest(
            text=message.content,
            attachments=message.attachments,
            message_id=message.id,
        )
        history = self.store.messages

        await self._append(message)
        # Input entered while encoding was suspended belongs to the next turn.
        if self._draft == draft:
            self._draft = ""
        await self.attachments.discard(staged)
        await self._publish_state()

        LOGGER.info(
            "session.submit",
            extra={
                "event": "session.submit",
                "message_id": message.id,
                "attachments": len(message.attachments),
            },
        )
        self.task_manager.add(
            asyncio.create_task(self._stream_reply(request, history)),
            name=_REPLY_TASK,
        )
        return message

    async def wait_for_reply(self) -> None:
        """Wait until the in-flight reply, if any, has settled."""
        await self.task_manager.wait(_REPLY_TASK)

    async def reset(self) -> bool:
        """Start over with a fresh history; refused while a reply is in flight."""
        if not await self.state_manager.can_submit():
            self._reject(SessionBusyError(BUSY_MESSAGE))
            return False
        self.store.clear()
        self._draft = ""
        await self.attachments.clear()
        await self.bus.publish(MESSAGES_CHANGED, {"count": 0}, source="session")
        await self.activate()
        return True

    async def shutdown(self) -> None:
        """Cancel background work on application exit."""
        await self.task_manager.cancel_all()
        await self.state_manager.transition_to(SessionState.IDLE)

    # -- internals -------------------------------------------------------

    def _reject(self, exc: CotaxChatError) -> None:
        LOGGER.info(
            "session.rejected",
            extra={"event": "session.rejected", "kind": exc.kind},
        )
        self.notifier.report(exc)

    async def _append(self, message: Message) -> None:
        self.store.append(message)
        await self.bus.publish(
            MESSAGES_CHANGED,
            {"count": len(self.store), "message_id": message.id, "role": message.role},
            source="session",
        )

    async def _publish_state(self) -> None:
        await self.bus.publish(
            STATE_CHANGED, {"state": self.state_manager.current.value}, source="session"
        )

    async def _stream_reply(self, request: ChatRequest, history: tuple[Message, ...]) -> None:
        parts: list[str] = []
        message_id: str | None = None
        try:
            async for chunk in self.client.stream(request, history):
                if chunk.kind == "content":
                    parts.append(chunk.text)
                    self._streaming_text = "".join(parts)
                    await self.bus.publish(
                        REPLY_DELTA,
                        {"text": chunk.text, "content": self._streaming_text},
                        source="session",
                    )
                elif chunk.kind == "finish":
                    message_id = chunk.message_id

            content = "".join(parts)
            if not content:
                self._reject(TransportError(EMPTY_REPLY_MESSAGE))
                return
            for attachment in request.attachments:
                attachment.uploaded = True
            await self._append(
                Message(
                    id=message_id or uuid4().hex,
                    role="assistant",
                    content=content,
                )
            )
        except asyncio.CancelledError:
            raise
        except TransportError as exc:
            self._reject(exc)
        except Exception as exc:  # noqa: BLE001 - clients may leak unmapped errors.
            LOGGER.exception(
                "session.reply.failed",
                extra={"event": "session.reply.failed", "error_type": type(exc).__name__},
            )
            self._reject(TransportError(f"Something went wrong: {exc}"))
        finally:
            self._streaming_text = ""
            await self.state_manager.transition_to(SessionState.IDLE)
            await self._publish_state()
