"""
Error handling for the chat streaming core.

Every error raised by the transport or the frame decoder carries an
``ErrorKind`` so callers can branch on the kind instead of the message:
- RATE_LIMITED: the service answered 429, the user has to wait
- PAYMENT_REQUIRED: the service answered 402, needs an account action
- TRANSPORT_FAILURE: any other failure before streaming starts
- DECODE_FAILURE: the stream broke while it was being read
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    """Classification of chat streaming failures."""
    RATE_LIMITED = "rate_limited"
    PAYMENT_REQUIRED = "payment_required"
    TRANSPORT_FAILURE = "transport_failure"
    DECODE_FAILURE = "decode_failure"


class ChatStreamError(Exception):
    """Base chat streaming error with context."""

    kind: ErrorKind = ErrorKind.TRANSPORT_FAILURE

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        url: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class RateLimitError(ChatStreamError):
    """Service rejected the request with 429. Never retried automatically."""

    kind = ErrorKind.RATE_LIMITED

    def __init__(
        self,
        message: str,
        retry_after: float | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class PaymentRequiredError(ChatStreamError):
    """Service rejected the request with 402."""

    kind = ErrorKind.PAYMENT_REQUIRED


class TransportError(ChatStreamError):
    """Non-success status, missing body or connection failure."""

    kind = ErrorKind.TRANSPORT_FAILURE


class DecodeError(ChatStreamError):
    """Read error or buffer overflow while the stream was being consumed."""

    kind = ErrorKind.DECODE_FAILURE
