"""
Event-stream frame decoder and reply assembler.

The decoder turns raw byte chunks into text deltas; the assembler drives it
from an async byte iterator and grows one assistant message in place.
"""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import AsyncIterable, Callable

import httpx

from docchat.history.conversation import Conversation
from docchat.history.models import Message

from ..exceptions import DecodeError
from .models import Frame, FrameBuffer, FrameState, FrameType

logger = logging.getLogger(__name__)

# Constants
DATA_PREFIX = "data: "
COMMENT_PREFIX = ":"
DONE_SENTINEL = "[DONE]"


def extract_delta(record) -> str | None:
    """Return ``choices[0].delta.content`` when it is a non-empty string."""
    if not isinstance(record, dict):
        return None
    choices = record.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    choice = choices[0]
    if not isinstance(choice, dict):
        return None
    delta = choice.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


def parse_line(raw_line: str) -> Frame:
    """Classify one line of the event stream."""
    line = raw_line[:-1] if raw_line.endswith("\r") else raw_line

    if not line.strip():
        return Frame(FrameType.IGNORED, raw_line)
    if line.startswith(COMMENT_PREFIX):
        return Frame(FrameType.COMMENT, raw_line)
    if not line.startswith(DATA_PREFIX):
        return Frame(FrameType.IGNORED, raw_line)

    payload = line[len(DATA_PREFIX):].strip()
    if not payload:
        return Frame(FrameType.HEARTBEAT, raw_line)
    if payload == DONE_SENTINEL:
        return Frame(FrameType.SENTINEL, raw_line)

    try:
        record = json.loads(payload)
    except (ValueError, RecursionError):
        # Oversized integers and deep nesting fail here too
        return Frame(FrameType.PARTIAL, raw_line)

    return Frame(FrameType.DATA, raw_line, data=record, delta=extract_delta(record))


class FrameDecoder:
    """
    Incremental event-stream decoder.

    Bytes go through a stateful UTF-8 decoder, so a character split across
    chunks is only emitted once complete. Lines are then taken off the
    buffer one at a time:
    - blank, comment and non-data lines are skipped
    - ``data: [DONE]`` stops line extraction for the current chunk
    - a payload that is not valid JSON is pushed back and extraction stops
      until more bytes arrive
    """

    def __init__(self, max_buffer_size: int | None = None):
        self.buffer = FrameBuffer(max_size=max_buffer_size)
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.stats = self._empty_stats()

    @staticmethod
    def _empty_stats() -> dict[str, int]:
        return {
            'chunks': 0,
            'frames': 0,
            'comments': 0,
            'heartbeats': 0,
            'deltas': 0,
            'sentinels': 0,
            'pushbacks': 0,
            'retries': 0,
            'dropped': 0,
        }

    def feed(self, chunk: bytes) -> list[str]:
        """Decode one chunk and return the deltas it completed, in order."""
        self.stats['chunks'] += 1
        self.buffer.append(self._decoder.decode(chunk))

        deltas: list[str] = []
        while True:
            retry = self.buffer.pending_line is not None
            raw_line = self.buffer.next_line()
            if raw_line is None:
                break
            frame = self._classify(raw_line, retry=retry)

            if frame.frame_type is FrameType.SENTINEL:
                break

            if frame.frame_type is FrameType.PARTIAL:
                # Incomplete JSON: wait for the next chunk
                self.buffer.push_back(raw_line)
                self.stats['pushbacks'] += 1
                break

            if frame.delta:
                deltas.append(frame.delta)

        return deltas

    def finish(self) -> list[str]:
        """Flush whatever is still buffered once the transport has ended."""
        self.buffer.append(self._decoder.decode(b"", final=True))

        deltas: list[str] = []
        retry = self.buffer.pending_line is not None
        for index, raw_line in enumerate(self.buffer.drain()):
            frame = self._classify(raw_line, retry=retry and index == 0)
            if frame.frame_type is FrameType.PARTIAL:
                self.stats['dropped'] += 1
                logger.warning(
                    f"Dropping unparseable line at end of stream: {raw_line!r}"
                )
                continue
            if frame.delta:
                deltas.append(frame.delta)

        return deltas

    def _classify(self, raw_line: str, retry: bool = False) -> Frame:
        frame = parse_line(raw_line)
        if retry:
            # A pushed back line was already counted as a frame
            self.stats['retries'] += 1
        else:
            self.stats['frames'] += 1
        if frame.frame_type is FrameType.COMMENT:
            self.stats['comments'] += 1
        elif frame.frame_type is FrameType.HEARTBEAT:
            self.stats['heartbeats'] += 1
        elif frame.frame_type is FrameType.SENTINEL:
            self.stats['sentinels'] += 1
        elif frame.delta:
            self.stats['deltas'] += 1
        return frame

    def get_stats(self) -> dict[str, int]:
        """Get decoding statistics for monitoring."""
        return self.stats.copy()

    def reset_stats(self) -> None:
        """Reset statistics counters."""
        self.stats = self._empty_stats()


class ReplyAssembler:
    """
    Grows a single assistant reply from a streamed response body.

    The reply is appended to the conversation when the first delta arrives
    and ``on_update`` is called after every delta with the updated message.
    A read error leaves the reply with whatever content it had reached.
    """

    def __init__(
        self,
        conversation: Conversation,
        on_update: Callable[[Message], None] | None = None,
        max_buffer_size: int | None = None,
    ):
        self.conversation = conversation
        self.on_update = on_update
        self.decoder = FrameDecoder(max_buffer_size=max_buffer_size)
        self.state = FrameState.READING
        self.message: Message | None = None

    async def consume(self, chunks: AsyncIterable[bytes]) -> Message | None:
        """Read ``chunks`` to the end. Returns the reply, if one was started."""
        try:
            async for chunk in chunks:
                for delta in self.decoder.feed(chunk):
                    self._apply(delta)

            for delta in self.decoder.finish():
                self._apply(delta)

        except httpx.HTTPError as e:
            self.state = FrameState.FAILED
            logger.debug(f"Stream read failed: {e}")
            raise DecodeError(f"Stream read failed: {e}") from e
        except Exception:
            self.state = FrameState.FAILED
            raise
        finally:
            if self.message is not None:
                self.conversation.finish_reply()

        self.state = FrameState.DONE
        logger.debug(f"Stream complete: {self.decoder.get_stats()}")
        return self.message

    def _apply(self, delta: str) -> None:
        if self.message is None:
            self.message = self.conversation.start_reply()
        self.conversation.extend_reply(delta)
        if self.on_update is not None:
            self.on_update(self.message)
