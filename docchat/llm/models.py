"""
Connection configuration for the completion service.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ServiceConfig:
    """Completion service configuration."""
    base_url: str
    api_key: str
    endpoint: str = "/chat"
    default_purpose: str = "chat"

    # Connection settings; None disables the timeout
    connect_timeout: float | None = 10.0
    read_timeout: float | None = None
    write_timeout: float | None = 10.0
    pool_timeout: float | None = 10.0

    # Stream settings; None means unbounded
    max_buffer_size: int | None = None
    chunk_size: int | None = None

    @property
    def url(self) -> str:
        """Absolute URL of the streaming endpoint."""
        return self.base_url.rstrip("/") + "/" + self.endpoint.lstrip("/")
