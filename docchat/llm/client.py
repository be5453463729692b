"""
Streaming HTTP client for the completion service.

One request is opened per user turn. The response status is checked before
any byte of the body is read; only a successful response with a body is
handed to the frame decoder.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

import httpx

from docchat.history.conversation import Conversation
from docchat.history.models import Message
from docchat.logging_utils import log_operation

from .exceptions import PaymentRequiredError, RateLimitError, TransportError
from .models import ServiceConfig
from .streaming.parser import ReplyAssembler

logger = logging.getLogger(__name__)

HTTP_PAYMENT_REQUIRED = 402
HTTP_TOO_MANY_REQUESTS = 429
NO_BODY_STATUSES = (204, 205)


def _parse_retry_after(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class ChatStreamClient:
    """HTTP client that streams assistant replies from the completion service."""

    def __init__(
        self,
        config: ServiceConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not config.base_url:
            raise ValueError("Service base_url must be configured")
        if not config.api_key:
            raise ValueError("Service api_key must be configured")

        self.config = config
        self._owns_client = client is None
        self.client: httpx.AsyncClient = client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=config.connect_timeout,
                read=config.read_timeout,
                write=config.write_timeout,
                pool=config.pool_timeout,
            ),
        )

    def build_payload(
        self, conversation: Conversation, purpose: str | None = None
    ) -> dict[str, Any]:
        """Request body: the whole conversation plus the purpose tag."""
        return {
            "messages": conversation.to_payload(),
            "type": purpose or self.config.default_purpose,
        }

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Accept": "text/event-stream",
        }

    def check_response(self, response: httpx.Response) -> None:
        """Raise the matching error for an unusable response. Never reads the body."""
        status = response.status_code
        url = self.config.url

        if status == HTTP_TOO_MANY_REQUESTS:
            raise RateLimitError(
                "Rate limit exceeded, please try again later",
                retry_after=_parse_retry_after(response.headers.get("retry-after")),
                status_code=status,
                url=url,
            )
        if status == HTTP_PAYMENT_REQUIRED:
            raise PaymentRequiredError(
                "Payment required, please add credits to continue",
                status_code=status,
                url=url,
            )
        if not response.is_success:
            raise TransportError(
                f"Streaming API error {status}",
                status_code=status,
                url=url,
            )
        if (
            status in NO_BODY_STATUSES
            or response.headers.get("content-length") == "0"
        ):
            raise TransportError(
                f"Streaming API returned no body (status {status})",
                status_code=status,
                url=url,
            )

    @asynccontextmanager
    async def open_stream(
        self, conversation: Conversation, purpose: str | None = None
    ) -> AsyncIterator[httpx.Response]:
        """Send the request and yield the checked, still unread response."""
        request = self.client.build_request(
            "POST",
            self.config.url,
            json=self.build_payload(conversation, purpose),
            headers=self._headers(),
        )

        try:
            response = await self.client.send(request, stream=True)
        except httpx.HTTPError as e:
            logger.debug(f"HTTP error opening stream: {e}")
            raise TransportError(f"HTTP error: {e!s}", url=self.config.url) from e

        try:
            self.check_response(response)
            yield response
        finally:
            await response.aclose()

    @log_operation("stream_reply")
    async def stream_reply(
        self,
        conversation: Conversation,
        purpose: str | None = None,
        on_update: Callable[[Message], None] | None = None,
    ) -> None:
        """
        Stream one assistant reply into ``conversation``.

        Raises RateLimitError, PaymentRequiredError or TransportError before
        streaming starts and DecodeError if the stream breaks. ``on_update``
        is called once per delta with the growing assistant message.
        """
        async with self.open_stream(conversation, purpose) as response:
            assembler = ReplyAssembler(
                conversation,
                on_update=on_update,
                max_buffer_size=self.config.max_buffer_size,
            )
            await assembler.consume(
                response.aiter_bytes(chunk_size=self.config.chunk_size)
            )

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> ChatStreamClient:
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
