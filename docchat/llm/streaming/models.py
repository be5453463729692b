"""
Streaming-specific dataclasses for the frame decoder.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..exceptions import DecodeError


class FrameState(Enum):
    """Lifecycle of one streamed reply."""
    READING = "reading"
    DONE = "done"
    FAILED = "failed"


class FrameType(Enum):
    """Classification of a single decoded line."""
    IGNORED = "ignored"      # blank line or not a data line
    COMMENT = "comment"      # starts with ":"
    HEARTBEAT = "heartbeat"  # "data: " with an empty payload
    SENTINEL = "sentinel"    # "data: [DONE]"
    DATA = "data"            # parsed JSON record
    PARTIAL = "partial"      # payload that is not valid JSON yet


@dataclass(frozen=True)
class Frame:
    """One line of the event stream after classification."""
    frame_type: FrameType
    raw_line: str
    data: Any = None
    delta: str | None = None


@dataclass
class FrameBuffer:
    """
    Text received but not yet resolved into complete lines.

    ``pending_line`` holds a line that was extracted, failed to parse and was
    pushed back; it is handed out again before anything in ``text``.
    """
    text: str = ""
    pending_line: str | None = None
    max_size: int | None = None
    peak_size: int = 0

    @property
    def contents(self) -> str:
        """Buffered text exactly as it would appear on the wire."""
        if self.pending_line is None:
            return self.text
        return self.pending_line + "\n" + self.text

    def __len__(self) -> int:
        return len(self.contents)

    def append(self, text: str) -> None:
        """Add decoded text to the end of the buffer."""
        self.text += text
        size = len(self)
        self.peak_size = max(self.peak_size, size)
        if self.max_size is not None and size > self.max_size:
            raise DecodeError(
                f"Frame buffer exceeded {self.max_size} characters "
                f"(holding {size})"
            )

    def next_line(self) -> str | None:
        """Remove and return the next complete line, without its newline."""
        if self.pending_line is not None:
            line, self.pending_line = self.pending_line, None
            return line

        index = self.text.find("\n")
        if index == -1:
            return None
        line = self.text[:index]
        self.text = self.text[index + 1:]
        return line

    def push_back(self, line: str) -> None:
        """Return a line to the front of the buffer, byte for byte."""
        if self.pending_line is not None:
            raise RuntimeError("A pushed back line is already pending")
        self.pending_line = line

    def drain(self) -> list[str]:
        """Remove everything, splitting the remainder into lines."""
        lines = []
        while (line := self.next_line()) is not None:
            lines.append(line)
        if self.text:
            lines.append(self.text)
            self.text = ""
        return lines
