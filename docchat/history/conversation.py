"""
In-memory conversation log.

Messages are kept in insertion order, which is both chronological and
display order. Only the most recent assistant reply may be "in progress";
every other message is final once appended.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from docchat.history.models import Message, Role

logger = logging.getLogger(__name__)


class Conversation:
    """Ordered log of chat messages with a single in-progress reply slot."""

    def __init__(self, messages: Iterable[Message] | None = None) -> None:
        self._messages: list[Message] = list(messages or [])
        self._in_progress: Message | None = None

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    @property
    def messages(self) -> list[Message]:
        """Snapshot of the log in display order."""
        return list(self._messages)

    @property
    def in_progress(self) -> Message | None:
        """The assistant reply currently being streamed, if any."""
        return self._in_progress

    def add(self, role: Role, content: str) -> Message:
        """Append a finished message."""
        if self._in_progress is not None:
            raise RuntimeError(
                "Cannot append a message while a reply is in progress"
            )
        message = Message(role=role, content=content)
        self._messages.append(message)
        return message

    def start_reply(self) -> Message:
        """Append an empty assistant message and mark it in progress."""
        if self._in_progress is not None:
            raise RuntimeError("A reply is already in progress")
        message = Message(role="assistant")
        self._messages.append(message)
        self._in_progress = message
        logger.debug(f"Started assistant reply {message.id}")
        return message

    def extend_reply(self, delta: str) -> Message:
        """Concatenate ``delta`` onto the in-progress reply."""
        if self._in_progress is None:
            raise RuntimeError("No reply is in progress")
        self._in_progress.content += delta
        return self._in_progress

    def finish_reply(self) -> Message | None:
        """Freeze the in-progress reply. Partial content is kept as is."""
        message, self._in_progress = self._in_progress, None
        return message

    def to_payload(self) -> list[dict[str, str]]:
        """Messages in the minimal ``{role, content}`` wire shape."""
        return [message.to_payload() for message in self._messages]
