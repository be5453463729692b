"""
Chat session for the document assistant.

This module handles the turn flow of the chat box:
- Conversation log seeded with a welcome message
- One turn in progress at a time
- Streaming the assistant reply with per-delta updates
- Turning every failure into exactly one user-visible notice
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict

from docchat.history.conversation import Conversation
from docchat.history.models import Message
from docchat.llm.exceptions import ErrorKind
from docchat.logging_utils import ChatErrorHandler, ContextualLogger, operation_context

DEFAULT_WELCOME_MESSAGE = (
    "Hello! I'm your AI assistant. I can help you prepare documents. "
    "Ask me anything."
)


class SessionConfig(BaseModel):
    """Parameters for a chat session."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    client: Any  # ChatStreamClient
    default_purpose: str = "chat"
    welcome_message: str | None = DEFAULT_WELCOME_MESSAGE
    rate_limited_notice: str = (
        "Too many requests. Please wait a moment and try again."
    )
    payment_required_notice: str = (
        "Credits are exhausted. Please add credits to continue."
    )
    generic_failure_notice: str = "Something went wrong. Please try again."


class ChatSession:
    """
    Conversation orchestrator for the assistant chat box.
    1. Takes the user's message
    2. Streams the assistant reply into the conversation
    3. Reports failures as a single notice
    """

    def __init__(
        self,
        session_config: SessionConfig,
        on_update: Callable[[Message], None] | None = None,
        on_notice: Callable[[str], None] | None = None,
    ):
        self.config = session_config
        self.client = session_config.client
        self.on_update = on_update
        self.on_notice = on_notice
        self.conversation = Conversation()
        if session_config.welcome_message:
            self.conversation.add("assistant", session_config.welcome_message)
        self._loading = False
        self._logger = ContextualLogger({"component": "chat_session"})

    @property
    def is_loading(self) -> bool:
        """Whether a turn is currently in progress."""
        return self._loading

    @property
    def messages(self) -> list[Message]:
        return self.conversation.messages

    async def send(self, text: str, purpose: str | None = None) -> bool:
        """
        Run one turn. Returns False without doing anything when the text is
        blank or another turn is still in progress.
        """
        text = text.strip()
        if not text or self._loading:
            return False

        purpose = purpose or self.config.default_purpose
        turn_id = str(uuid.uuid4())
        self.conversation.add("user", text)
        self._loading = True

        try:
            # Failures are logged once, with their kind, by _report_failure
            async with operation_context(
                "chat_turn",
                context={"turn_id": turn_id, "purpose": purpose},
                log_failure=False,
            ):
                await self.client.stream_reply(
                    self.conversation, purpose, on_update=self._publish
                )
        except Exception as e:
            # Top of the turn: every failure ends here as one notice
            self._report_failure(e, turn_id)
        finally:
            self._loading = False

        return True

    def _publish(self, message: Message) -> None:
        if self.on_update is not None:
            self.on_update(message)

    def _report_failure(self, error: Exception, turn_id: str) -> None:
        error_kind = ChatErrorHandler.log_error(
            error, "chat_turn", context={"turn_id": turn_id}
        )

        if error_kind is ErrorKind.RATE_LIMITED:
            notice = self.config.rate_limited_notice
        elif error_kind is ErrorKind.PAYMENT_REQUIRED:
            notice = self.config.payment_required_notice
        else:
            notice = self.config.generic_failure_notice

        self._logger.bind(turn_id=turn_id).info(
            "Reporting turn failure", error_kind=error_kind.value
        )
        if self.on_notice is not None:
            self.on_notice(notice)
