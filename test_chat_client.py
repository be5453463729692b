#!/usr/bin/env python3
"""
Tests for the streaming HTTP client (request building and status checks).
"""

from __future__ import annotations

import json

import httpx
import pytest

from docchat.history.conversation import Conversation
from docchat.llm.client import ChatStreamClient
from docchat.llm.exceptions import (
    DecodeError,
    ErrorKind,
    PaymentRequiredError,
    RateLimitError,
    TransportError,
)
from docchat.llm.models import ServiceConfig

SERVICE_CONFIG = ServiceConfig(
    base_url="https://api.test/functions/v1/",
    api_key="secret-token",
    endpoint="/chat",
    default_purpose="chat",
)


class RecordingStream(httpx.AsyncByteStream):
    """Response body that remembers whether anyone read it."""

    def __init__(self, chunks: list[bytes], error: Exception | None = None):
        self.chunks = chunks
        self.error = error
        self.was_read = False
        self.closed = False

    async def __aiter__(self):
        self.was_read = True
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error

    async def aclose(self) -> None:
        self.closed = True


def make_client(handler) -> ChatStreamClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ChatStreamClient(SERVICE_CONFIG, client=http_client)


def make_conversation() -> Conversation:
    conversation = Conversation()
    conversation.add("assistant", "Welcome!")
    conversation.add("user", "Make my text a slide deck")
    return conversation


def sse_response(stream: RecordingStream, status: int = 200, **headers) -> httpx.Response:
    headers.setdefault("content-type", "text/event-stream")
    return httpx.Response(status, headers=headers, stream=stream)


class TestRequest:
    """Outbound request shape."""

    @pytest.mark.asyncio
    async def test_payload_and_headers(self):
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return sse_response(RecordingStream([b"data: [DONE]\n"]))

        client = make_client(handler)
        await client.stream_reply(make_conversation(), "summarize")

        request = captured[0]
        assert request.method == "POST"
        assert str(request.url) == "https://api.test/functions/v1/chat"
        assert request.headers["authorization"] == "Bearer secret-token"
        assert json.loads(request.content) == {
            "messages": [
                {"role": "assistant", "content": "Welcome!"},
                {"role": "user", "content": "Make my text a slide deck"},
            ],
            "type": "summarize",
        }

    def test_default_purpose(self):
        client = make_client(lambda request: httpx.Response(200))
        payload = client.build_payload(make_conversation())
        assert payload["type"] == "chat"
        assert all(set(m) == {"role", "content"} for m in payload["messages"])

    def test_requires_credentials(self):
        with pytest.raises(ValueError):
            ChatStreamClient(ServiceConfig(base_url="https://api.test", api_key=""))
        with pytest.raises(ValueError):
            ChatStreamClient(ServiceConfig(base_url="", api_key="key"))


class TestStatusClassification:
    """Non-success responses are classified before the body is touched."""

    @pytest.mark.asyncio
    async def test_429_is_rate_limited_and_body_unread(self):
        stream = RecordingStream([b"data: [DONE]\n"])
        client = make_client(
            lambda request: sse_response(stream, 429, **{"retry-after": "12"})
        )
        conversation = make_conversation()

        with pytest.raises(RateLimitError) as exc_info:
            await client.stream_reply(conversation)

        assert exc_info.value.kind is ErrorKind.RATE_LIMITED
        assert exc_info.value.status_code == 429
        assert exc_info.value.retry_after == 12.0
        assert stream.was_read is False
        assert stream.closed is True
        assert len(conversation) == 2

    @pytest.mark.asyncio
    async def test_402_is_payment_required_and_body_unread(self):
        stream = RecordingStream([b"data: [DONE]\n"])
        client = make_client(lambda request: sse_response(stream, 402))

        with pytest.raises(PaymentRequiredError) as exc_info:
            await client.stream_reply(make_conversation())

        assert exc_info.value.kind is ErrorKind.PAYMENT_REQUIRED
        assert stream.was_read is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 401, 404, 500, 503])
    async def test_other_errors_are_transport_failures(self, status):
        stream = RecordingStream([b"oops"])
        client = make_client(lambda request: sse_response(stream, status))

        with pytest.raises(TransportError) as exc_info:
            await client.stream_reply(make_conversation())

        assert exc_info.value.kind is ErrorKind.TRANSPORT_FAILURE
        assert exc_info.value.status_code == status
        assert stream.was_read is False

    @pytest.mark.asyncio
    async def test_success_without_body(self):
        client = make_client(lambda request: httpx.Response(204))

        with pytest.raises(TransportError):
            await client.stream_reply(make_conversation())

    @pytest.mark.asyncio
    async def test_success_with_zero_content_length(self):
        stream = RecordingStream([])
        client = make_client(
            lambda request: sse_response(stream, 200, **{"content-length": "0"})
        )

        with pytest.raises(TransportError):
            await client.stream_reply(make_conversation())
        assert stream.was_read is False

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)

        with pytest.raises(TransportError) as exc_info:
            await client.stream_reply(make_conversation())
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_connect_timeout_is_transport_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        client = make_client(handler)

        with pytest.raises(TransportError) as exc_info:
            await client.stream_reply(make_conversation())
        assert exc_info.value.kind is ErrorKind.TRANSPORT_FAILURE
        assert isinstance(exc_info.value.__cause__, httpx.ConnectTimeout)


class TestStreaming:
    """Successful responses are decoded into the conversation."""

    @pytest.mark.asyncio
    async def test_stream_reply_end_to_end(self):
        stream = RecordingStream([
            b'data: {"choices":[{"delta":{"content":"Hello"}}]}\n',
            b'data: {"choices":[{"delta":{"content":" world"}}]}\n',
            b"data: [DONE]\n",
        ])
        client = make_client(lambda request: sse_response(stream))
        conversation = make_conversation()
        published: list[str] = []

        result = await client.stream_reply(
            conversation, on_update=lambda m: published.append(m.content)
        )

        assert result is None
        assert published == ["Hello", "Hello world"]
        assert conversation.messages[-1].role == "assistant"
        assert conversation.messages[-1].content == "Hello world"
        assert conversation.in_progress is None

    @pytest.mark.asyncio
    async def test_read_error_mid_stream(self):
        stream = RecordingStream(
            [b'data: {"choices":[{"delta":{"content":"Half"}}]}\n'],
            error=httpx.ReadError("connection reset"),
        )
        client = make_client(lambda request: sse_response(stream))
        conversation = make_conversation()

        with pytest.raises(DecodeError) as exc_info:
            await client.stream_reply(conversation)

        assert exc_info.value.kind is ErrorKind.DECODE_FAILURE
        assert conversation.messages[-1].content == "Half"
        assert conversation.in_progress is None

    @pytest.mark.asyncio
    async def test_read_timeout_mid_stream(self):
        stream = RecordingStream(
            [b'data: {"choices":[{"delta":{"content":"x"}}]}\n'],
            error=httpx.ReadTimeout("timed out"),
        )
        client = make_client(lambda request: sse_response(stream))
        conversation = make_conversation()

        with pytest.raises(DecodeError) as exc_info:
            await client.stream_reply(conversation)

        assert isinstance(exc_info.value.__cause__, httpx.ReadTimeout)
        assert conversation.messages[-1].content == "x"
        assert conversation.in_progress is None

    @pytest.mark.asyncio
    async def test_body_decoding_error_mid_stream(self):
        stream = RecordingStream(
            [b'data: {"choices":[{"delta":{"content":"y"}}]}\n'],
            error=httpx.DecodingError("bad gzip"),
        )
        client = make_client(lambda request: sse_response(stream))
        conversation = make_conversation()

        with pytest.raises(DecodeError) as exc_info:
            await client.stream_reply(conversation)

        assert exc_info.value.kind is ErrorKind.DECODE_FAILURE
        assert conversation.messages[-1].content == "y"

    @pytest.mark.asyncio
    async def test_owned_client_is_closed(self):
        async with ChatStreamClient(SERVICE_CONFIG) as client:
            assert client.client.is_closed is False
        assert client.client.is_closed is True

    @pytest.mark.asyncio
    async def test_injected_client_is_left_open(self):
        http_client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200))
        )
        async with ChatStreamClient(SERVICE_CONFIG, client=http_client):
            pass
        assert http_client.is_closed is False
        await http_client.aclose()
