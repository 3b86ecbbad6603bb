import asyncio
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import discord

    from voicerecap.config import BotConfig
    from voicerecap.services.manager import ServicesManager

# -------------------------------------------------------------- #
# Context Class
# -------------------------------------------------------------- #


class Context:
    """
    Shared handle on the configuration, the services and the Discord bot.

    Cogs and services receive the context instead of each other, which keeps
    construction order free of import cycles. The bot and services are
    attached after construction, once they exist.
    """

    def __init__(self, config: "BotConfig | None" = None):
        self.config = config
        self.services_manager: "ServicesManager | None" = None
        self.bot: "discord.Bot | None" = None
        self._shutdown = asyncio.Event()

    def set_services_manager(self, services_manager: "ServicesManager") -> None:
        self.services_manager = services_manager

    def set_bot(self, bot: "discord.Bot") -> None:
        self.bot = bot

    # -------------------------------------------------------------- #
    # Shutdown
    # -------------------------------------------------------------- #

    def is_shutting_down(self) -> bool:
        return self._shutdown.is_set()

    def mark_shutdown_started(self) -> None:
        """Flag shutdown; services refuse new work from here on."""
        self._shutdown.set()
