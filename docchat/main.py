"""Terminal front end for the docchat assistant."""

from __future__ import annotations

import asyncio
import logging
import sys

from docchat.chat_service import ChatSession, SessionConfig
from docchat.config import Configuration
from docchat.history.models import Message
from docchat.llm.client import ChatStreamClient
from docchat.logging_utils import configure_logging

QUIT_COMMANDS = ("/quit", "/exit")


class ReplyPrinter:
    """Writes only the part of each reply that has not been printed yet."""

    def __init__(self, stream=None) -> None:
        self.stream = stream or sys.stdout
        self._printed: dict[str, int] = {}

    def __call__(self, message: Message) -> None:
        printed = self._printed.get(message.id, 0)
        if printed == 0:
            self.stream.write("assistant> ")
        self.stream.write(message.content[printed:])
        self.stream.flush()
        self._printed[message.id] = len(message.content)


def print_notice(notice: str) -> None:
    """Show a failure notice on stderr."""
    print(f"\n[!] {notice}", file=sys.stderr)


async def main() -> None:
    """Main entry point - interactive chat over stdin/stdout."""
    config = Configuration()
    configure_logging(config.get_logging_config().get("level", "WARNING"))

    service_config = config.get_service_config()

    async with ChatStreamClient(service_config) as client:
        session = ChatSession(
            SessionConfig(
                client=client,
                default_purpose=service_config.default_purpose,
                **config.get_session_config(),
            ),
            on_update=ReplyPrinter(),
            on_notice=print_notice,
        )

        for message in session.messages:
            print(f"{message.role}> {message.content}")

        while True:
            try:
                text = await asyncio.to_thread(input, "you> ")
            except EOFError:
                break

            if text.strip() in QUIT_COMMANDS:
                break

            if await session.send(text):
                print()


def run() -> None:
    """Console script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logging.info("Interrupted, exiting")
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    run()
