"""
Streaming functionality for the chat client.

- Event-stream line decoding with partial-frame recovery
- Reply accumulation with per-delta publishing
"""

from __future__ import annotations

from .models import Frame, FrameBuffer, FrameState, FrameType
from .parser import FrameDecoder, ReplyAssembler, extract_delta, parse_line

__all__ = [
    "Frame",
    "FrameBuffer",
    "FrameDecoder",
    "FrameState",
    "FrameType",
    "ReplyAssembler",
    "extract_delta",
    "parse_line",
]
