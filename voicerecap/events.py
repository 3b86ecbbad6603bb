import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import discord

logger = logging.getLogger(__name__)

MessageFilter = Callable[[discord.Message], Awaitable[bool]]
MessageHandler = Callable[[discord.Message], Awaitable[Any]]


# -------------------------------------------------------------- #
# Message Routing
# -------------------------------------------------------------- #


@dataclass
class RegisteredHandler:
    filter: MessageFilter
    handler: MessageHandler
    pass_through: bool = True


class MessageEventHandler:
    """
    Routes every incoming message through an ordered chain of (filter, handler) pairs.

    A handler runs only if its filter accepts the message. The chain stops
    after a handler registered with pass_through=False, or one that returns
    False. A failing filter or handler is logged and the chain moves on.
    """

    def __init__(self):
        self.handlers: list[RegisteredHandler] = []

    def register_handler(
        self,
        filter_func: MessageFilter,
        handler_func: MessageHandler,
        pass_through: bool = True,
    ) -> None:
        self.handlers.append(RegisteredHandler(filter_func, handler_func, pass_through))

    async def process_message(self, message: discord.Message) -> None:
        for registered in self.handlers:
            try:
                if not await registered.filter(message):
                    continue
                result = await registered.handler(message)
            except Exception as e:
                logger.error(f"Message handler {registered.handler!r} failed: {e}", exc_info=True)
                continue

            if not registered.pass_through or result is False:
                break
