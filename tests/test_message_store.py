"""Tests for the append-only message history."""

from __future__ import annotations

import unittest

from cotax_chat.attachments import Attachment
from cotax_chat.message_store import Message, MessageStore


class MessageStoreTests(unittest.TestCase):
    """Validate ordering, immutability, and reset."""

    def test_append_preserves_order(self) -> None:
        store = MessageStore()
        store.append(Message(id="1", role="assistant", content="Hi"))
        store.append(Message(id="2", role="user", content="Hello"))

        self.assertEqual(len(store), 2)
        self.assertEqual([m.id for m in store.messages], ["1", "2"])

    def test_snapshot_is_immutable(self) -> None:
        store = MessageStore()
        store.append(Message(id="1", role="user", content="x"))
        snapshot = store.messages
        store.append(Message(id="2", role="assistant", content="y"))
        self.assertEqual(len(snapshot), 1)

    def test_attachments_are_fixed_on_the_message(self) -> None:
        attachment = Attachment(
            url="data:text/plain;base64,aGk=", name="a.txt", content_type="text/plain"
        )
        message = Message(id="u1", role="user", content="look", attachments=(attachment,))
        with self.assertRaises(AttributeError):
            message.attachments = ()  # type: ignore[misc]

    def test_unknown_role_is_rejected(self) -> None:
        store = MessageStore()
        with self.assertRaises(ValueError):
            store.append(Message(id="1", role="system", content="nope"))  # type: ignore[arg-type]

    def test_clear(self) -> None:
        store = MessageStore()
        store.append(Message(id="1", role="user", content="x"))
        store.clear()
        self.assertEqual(len(store), 0)
        self.assertEqual(store.messages, ())


if __name__ == "__main__":
    unittest.main()
