"""
Completion service integration.

This package provides:
- Typed errors classified by kind (rate limit, payment, transport, decode)
- Explicit service configuration
- Incremental event-stream decoding (``docchat.llm.streaming``)
- The streaming HTTP client (``docchat.llm.client``)
"""

from __future__ import annotations

from .exceptions import (
    ChatStreamError,
    DecodeError,
    ErrorKind,
    PaymentRequiredError,
    RateLimitError,
    TransportError,
)
from .models import ServiceConfig

__all__ = [
    # Exceptions
    "ChatStreamError",
    "DecodeError",
    "ErrorKind",
    "PaymentRequiredError",
    "RateLimitError",
    # Configuration
    "ServiceConfig",
    "TransportError",
]
