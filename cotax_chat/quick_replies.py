"""Quick-reply shortcuts that fill the draft with a canned phrase and send it."""

from __future__ import annotations

from collections.abc import Sequence
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .message_store import Message
    from .session import SessionController

LOGGER = logging.getLogger(__name__)

DEFAULT_PHRASES: tuple[str, ...] = (
    "Sure, tell me more about it!",
    "Give me a quick summary",
    "How do tax brackets work?",
    "Tell me about deductions",
)
TABLE_PHRASE = "Generate a markdown table"


class QuickReplyExpander:
    """Expands a quick-reply button press into draft update plus submit.

    Staged attachments are left in place, so they travel with the phrase.
    """

    def __init__(
        self,
        session: SessionController,
        phrases: Sequence[str] = DEFAULT_PHRASES,
        table_phrase: str = TABLE_PHRASE,
    ) -> None:
        self.session = session
        self.phrases = tuple(phrases)
        self.table_phrase = table_phrase

    async def trigger(self, phrase: str) -> Message | None:
        """Set the draft to ``phrase`` and submit it when it is not blank."""
        self.session.set_draft(phrase)
        # Read back the draft just written, never a value captured earlier.
        if not self.session.draft.strip():
            return None
        LOGGER.debug(
            "quick_reply.trigger",
            extra={"event": "quick_reply.trigger", "phrase": phrase},
        )
        return await self.session.submit()

    async def trigger_index(self, index: int) -> Message | None:
        """Trigger the configured phrase at ``index``.

        Raises:
            IndexError: If ``index`` does not name a configured phrase.
        """
        if not 0 <= index < len(self.phrases):
            raise IndexError(f"No quick reply #{index + 1}")
        return await self.trigger(self.phrases[index])

    async def generate_table(self) -> Message | None:
        return await self.trigger(self.table_phrase)
