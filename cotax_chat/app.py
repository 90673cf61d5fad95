"""Console front end that wires the session core to a rich terminal."""

from __future__ import annotations

import asyncio
import logging
import shlex
from typing import Any

from rich.console import Console
from rich.markdown import Markdown

from .attachments import AttachmentManager, PendingFile
from .chat import HttpChatClient, StreamingClient
from .config import load_config
from .events import MESSAGES_CHANGED, REPLY_DELTA, Event, EventBus
from .image_generation import ImageGenerator
from .logging_utils import configure_logging
from .notices import Notifier
from .quick_replies import QuickReplyExpander
from .session import SessionController

LOGGER = logging.getLogger(__name__)

HELP_TEXT = """\
Type a message and press Enter to send it.
  /attach <path>...        stage files (images, text, PDF)
  /paste-text <name> <txt> stage pasted text as a file
  /remove <name>           unstage a file
  /files                   list staged files
  /quick <n>               send quick reply number n
  /table                   ask for a markdown table
  /image <prompt>          generate an image
  /reset                   start a new conversation
  /quit                    exit"""


def build_client(config: dict[str, Any]) -> StreamingClient:
    """Create the streaming client selected by ``backend.provider``."""
    backend = config["backend"]
    if backend["provider"] == "ollama":
        from .ollama_backend import OllamaChatClient

        ollama_cfg = config["ollama"]
        return OllamaChatClient(
            host=ollama_cfg["host"],
            model=ollama_cfg["model"],
            system_prompt=ollama_cfg["system_prompt"],
            timeout=backend["timeout"],
        )
    return HttpChatClient(
        base_url=backend["base_url"],
        chat_path=backend["chat_path"],
        timeout=backend["timeout"],
        retries=backend["retries"],
        retry_backoff_seconds=backend["retry_backoff_seconds"],
    )


class CotaxChatApp:
    """Line-oriented chat loop over ``SessionController``."""

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        *,
        console: Console | None = None,
        client: StreamingClient | None = None,
        image_generator: ImageGenerator | None = None,
    ) -> None:
        self.config = config or load_config()
        self.console = console or Console()
        self.bus = EventBus()
        self.notifier = Notifier(self.bus)
        self.attachments = AttachmentManager(self.notifier, self.bus)
        self.session = SessionController(
            client or build_client(self.config),
            self.attachments,
            greeting=self.config["app"]["greeting"],
            bus=self.bus,
            notifier=self.notifier,
        )
        quick_cfg = self.config["quick_replies"]
        self.quick_replies = QuickReplyExpander(
            self.session, quick_cfg["phrases"], quick_cfg["table_phrase"]
        )
        backend = self.config["backend"]
        self.images = image_generator or ImageGenerator(
            backend["base_url"],
            backend["image_path"],
            notifier=self.notifier,
            timeout=backend["timeout"],
        )
        self._printed = 0
        self._streamed = False

        self.notifier.on_error(self._show_error)
        self.bus.subscribe(MESSAGES_CHANGED, self._on_messages_changed)
        self.bus.subscribe(REPLY_DELTA, self._on_reply_delta)

    def run(self) -> None:
        configure_logging(self.config["logging"])
        asyncio.run(self.run_async())

    async def run_async(self) -> None:
        self.console.rule(self.config["app"]["title"])
        await self.session.activate()
        try:
            while True:
                try:
                    line = await asyncio.to_thread(self.console.input, "[bold]> [/bold]")
                except (EOFError, KeyboardInterrupt):
                    break
                if not await self.handle_line(line):
                    break
                await self.session.wait_for_reply()
        finally:
            await self.session.shutdown()
            await self.images.aclose()
            close = getattr(self.session.client, "aclose", None)
            if close is not None:
                await close()

    async def handle_line(self, line: str) -> bool:
        """Dispatch one input line. Returns False when the user asks to quit."""
        stripped = line.strip()
        if not stripped.startswith("/"):
            await self.session.submit(line)
            return True

        command, _, rest = stripped.partition(" ")
        if command == "/quit":
            return False
        if command == "/help":
            self.console.print(HELP_TEXT)
        elif command == "/attach":
            await self.attachments.add_paths(shlex.split(rest))
            self._show_staged()
        elif command == "/paste-text":
            name, _, text = rest.strip().partition(" ")
            if name:
                await self.attachments.add_files(
                    [PendingFile.from_bytes(name, text.encode("utf-8"), "text/plain")]
                )
            self._show_staged()
        elif command == "/remove":
            await self.attachments.remove(rest.strip())
            self._show_staged()
        elif command == "/files":
            self._show_staged()
        elif command == "/quick":
            try:
                await self.quick_replies.trigger_index(int(rest) - 1)
            except (ValueError, IndexError):
                self._show_quick_replies()
        elif command == "/table":
            await self.quick_replies.generate_table()
        elif command == "/image":
            image = await self.images.generate(rest)
            if image:
                self.console.print(f"[green]Image ready[/green] ({len(image)} chars)")
        elif command == "/reset":
            self._printed = 0
            self.console.clear()
            await self.session.reset()
        else:
            self.console.print(f"[yellow]Unknown command {command}. Try /help.[/yellow]")
        return True

    # -- presentation reactions ------------------------------------------

    def _show_error(self, kind: str, message: str) -> None:
        self.console.print(f"[red]{message}[/red]")

    def _show_staged(self) -> None:
        names = [f.name for f in self.attachments.pending]
        self.console.print(f"Staged: {', '.join(names) if names else '(none)'}")

    def _show_quick_replies(self) -> None:
        for number, phrase in enumerate(self.quick_replies.phrases, start=1):
            self.console.print(f"  {number}. {phrase}")

    def _on_reply_delta(self, event: Event) -> None:
        self._streamed = True
        self.console.print(event.data["text"], end="", markup=False, highlight=False)

    def _on_messages_changed(self, event: Event) -> None:
        messages = self.session.messages
        for message in messages[self._printed :]:
            if message.role == "assistant":
                if self._streamed:
                    self.console.print()
                    self._streamed = False
                else:
                    self.console.print(Markdown(message.content))
            for attachment in message.attachments:
                preview = attachment.text_preview()
                label = f"[dim]{attachment.kind}: {attachment.name}[/dim]"
                self.console.print(label if preview is None else f"{label}\n{preview}")
        self._printed = len(messages)
