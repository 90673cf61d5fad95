"""Tests for the data-stream HTTP chat client."""

from __future__ import annotations

import json
import unittest

import httpx

from cotax_chat.attachments import Attachment
from cotax_chat.chat import (
    RATE_LIMIT_MESSAGE,
    ChatRequest,
    HttpChatClient,
    ReplyChunk,
    parse_stream_part,
)
from cotax_chat.exceptions import RateLimitError, TransportError
from cotax_chat.message_store import Message

STREAM_BODY = "\n".join(
    [
        'f:{"messageId":"msg-abc"}',
        '0:"Standard "',
        '0:"deduction"',
        'e:{"finishReason":"stop"}',
        'd:{"finishReason":"stop"}',
    ]
)

IMAGE = Attachment(
    url="data:image/png;base64,iVBORw0KGgo=", name="receipt.png", content_type="image/png"
)


def _client(handler, **kwargs) -> HttpChatClient:
    transport = httpx.MockTransport(handler)
    return HttpChatClient(
        "http://cotax.test/",
        client=httpx.AsyncClient(transport=transport),
        **kwargs,
    )


async def _collect(client: HttpChatClient, request: ChatRequest, history=()) -> list[ReplyChunk]:
    return [chunk async for chunk in client.stream(request, history)]


class ParseStreamPartTests(unittest.TestCase):
    """Validate parsing of single data-stream lines."""

    def test_text_part(self) -> None:
        self.assertEqual(parse_stream_part('0:"hi\\n"'), ("0", "hi\n"))

    def test_object_part(self) -> None:
        self.assertEqual(parse_stream_part('f:{"messageId":"m1"}'), ("f", {"messageId": "m1"}))

    def test_blank_and_malformed_lines(self) -> None:
        self.assertIsNone(parse_stream_part(""))
        self.assertIsNone(parse_stream_part("no separator"))
        self.assertIsNone(parse_stream_part('0:"unterminated'))


class ChatRequestTests(unittest.TestCase):
    def test_payload_omits_empty_attachments(self) -> None:
        self.assertEqual(ChatRequest(text="hello").to_payload(), {"text": "hello"})

    def test_payload_includes_attachments(self) -> None:
        payload = ChatRequest(text="look", attachments=(IMAGE,)).to_payload()
        self.assertEqual(
            payload["attachments"],
            [{"url": IMAGE.url, "name": "receipt.png", "contentType": "image/png"}],
        )


class HttpChatClientTests(unittest.IsolatedAsyncioTestCase):
    """Validate streaming, request body, and error mapping."""

    async def test_streams_text_parts_then_finish(self) -> None:
        client = _client(lambda request: httpx.Response(200, text=STREAM_BODY))

        chunks = await _collect(client, ChatRequest(text="What is the standard deduction?"))
        await client.aclose()

        self.assertEqual(
            [(c.kind, c.text) for c in chunks],
            [("content", "Standard "), ("content", "deduction"), ("finish", "")],
        )
        self.assertEqual(chunks[-1].message_id, "msg-abc")

    async def test_body_carries_history_and_new_turn(self) -> None:
        captured: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(json.loads(request.content))
            self.assertEqual(str(request.url), "http://cotax.test/api/chat")
            return httpx.Response(200, text='0:"ok"\n')

        client = _client(handler)
        history = [
            Message(id="greeting", role="assistant", content="Hi!"),
            Message(id="u1", role="user", content="see this", attachments=(IMAGE,)),
        ]
        await _collect(
            client, ChatRequest(text="and now?", message_id="u2"), history
        )

        body = captured[0]
        self.assertEqual([m["id"] for m in body["messages"]], ["greeting", "u1", "u2"])
        self.assertNotIn("experimental_attachments", body["messages"][0])
        self.assertEqual(
            body["messages"][1]["experimental_attachments"][0]["contentType"], "image/png"
        )
        self.assertEqual(body["messages"][2], {"id": "u2", "role": "user", "content": "and now?"})

    async def test_new_turn_attachments_are_sent(self) -> None:
        captured: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(json.loads(request.content))
            return httpx.Response(200, text="")

        client = _client(handler)
        request = ChatRequest(text="check", attachments=(IMAGE,))
        chunks = await _collect(client, request)

        turn = captured[0]["messages"][-1]
        self.assertEqual(turn["content"], request.to_payload()["text"])
        self.assertEqual(turn["experimental_attachments"], request.to_payload()["attachments"])
        self.assertEqual(turn["experimental_attachments"][0]["name"], "receipt.png")
        self.assertEqual([c.kind for c in chunks], ["finish"])
        self.assertIsNone(chunks[0].message_id)

    async def test_rate_limit_maps_to_rate_limit_error(self) -> None:
        client = _client(lambda request: httpx.Response(429, text="slow down"))

        with self.assertRaises(RateLimitError) as ctx:
            await _collect(client, ChatRequest(text="hi"))
        self.assertEqual(str(ctx.exception), RATE_LIMIT_MESSAGE)
        self.assertEqual(ctx.exception.kind, "transport")

    async def test_server_error_maps_to_transport_error(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(500, text="boom")

        client = _client(handler, retries=2, retry_backoff_seconds=0.0)
        with self.assertRaises(TransportError) as ctx:
            await _collect(client, ChatRequest(text="hi"))

        self.assertNotIsInstance(ctx.exception, RateLimitError)
        self.assertIn("500", str(ctx.exception))
        self.assertEqual(calls, 1)

    async def test_error_part_raises_transport_error(self) -> None:
        client = _client(
            lambda request: httpx.Response(200, text='0:"partial"\n3:"model overloaded"\n')
        )

        seen: list[str] = []
        with self.assertRaises(TransportError) as ctx:
            async for chunk in client.stream(ChatRequest(text="hi"), ()):
                seen.append(chunk.text)
        self.assertEqual(str(ctx.exception), "model overloaded")
        self.assertEqual(seen, ["partial"])

    async def test_connect_failure_is_retried(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, text='0:"ok"\n')

        client = _client(handler, retries=1, retry_backoff_seconds=0.0)
        with self.assertLogs("cotax_chat.chat", level="WARNING") as logs:
            chunks = await _collect(client, ChatRequest(text="hi"))

        self.assertEqual(calls, 2)
        self.assertEqual(chunks[0].text, "ok")
        self.assertTrue(any("chat.request.failed" in line for line in logs.output))

    async def test_connect_failure_exhausts_retries(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = _client(handler, retries=1, retry_backoff_seconds=0.0)
        with self.assertRaises(TransportError) as ctx:
            await _collect(client, ChatRequest(text="hi"))
        self.assertIn("Unable to connect", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
