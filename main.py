"""
Entry point: load configuration, start services, run the Discord bot.

    python main.py
"""

import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path

import discord

from voicerecap.config import ConfigurationError, load_config
from voicerecap.context import Context
from voicerecap.events import MessageEventHandler
from voicerecap.services.constructor import construct_services_manager
from voicerecap.services.manager import ServicesManager


def configure_startup_logging(log_dir: str = "logs") -> Path:
    """Route stdlib logging (py-cord and sync helpers) to stdout and a run log file.

    Returns:
        Path of the run log file, shared with AsyncLoggingService
    """
    log_path = Path(log_dir) / f"app_{datetime.now():%Y-%m-%d_%H-%M-%S}.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=logging.INFO,
        format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_path, mode="a", encoding="utf-8"),
        ],
        force=True,
    )
    return log_path


# -------------------------------------------------------------- #
# Bot
# -------------------------------------------------------------- #

intents = discord.Intents.default()
intents.guild_messages = True
intents.voice_states = True
intents.message_content = True  # prefix commands read message text

bot = discord.Bot(intents=intents)

message_event_handler = MessageEventHandler()


async def load_cogs(context: Context) -> None:
    """Register each cog's message filter and handler with the router."""
    from cogs.voice import setup as setup_voice

    voice_cog = setup_voice(context)
    message_event_handler.register_handler(
        filter_func=voice_cog.filter_message,
        handler_func=voice_cog.handle_message,
        pass_through=False,
    )
    await context.services_manager.logging_service.info("✓ Loaded cogs.voice")


@bot.event
async def on_message(message: discord.Message):
    await message_event_handler.process_message(message)


@bot.event
async def on_ready():
    logger = bot.context.services_manager.logging_service

    await logger.info(f"Logged in as {bot.user.name} (ID: {bot.user.id})")
    await logger.info(f"Serving {len(bot.guilds)} guild(s)")
    for guild in bot.guilds:
        await logger.info(f"  ✓ {guild.name} (ID: {guild.id})")

    # Loads libopus on first call
    try:
        opus_version = discord.opus.Decoder.get_opus_version()
    except discord.opus.OpusNotLoaded:
        await logger.warning(
            "⚠️  Opus library could not be loaded - voice frames cannot be decoded. "
            "Install libopus to enable recording."
        )
    else:
        await logger.info(f"Opus library loaded: {opus_version}")


# -------------------------------------------------------------- #
# Startup
# -------------------------------------------------------------- #


async def start_services(context: Context, log_path: Path) -> ServicesManager:
    services_manager = construct_services_manager(
        context=context,
        config=context.config,
        log_file=log_path.name,
    )
    context.set_services_manager(services_manager)
    await services_manager.initialize_all()
    await services_manager.logging_service.info("[OK] Initialized all services.")
    return services_manager


async def main():
    try:
        config = load_config()
    except ConfigurationError as e:
        configure_startup_logging()
        logging.error(f"Cannot start: {e}")
        return

    log_path = configure_startup_logging(config.log_dir)
    context = Context(config)
    services_manager = await start_services(context, log_path)

    context.set_bot(bot)
    bot.context = context

    try:
        async with bot:
            await load_cogs(context)
            await bot.start(config.discord_token)
    finally:
        await services_manager.shutdown_all()


if __name__ == "__main__":
    asyncio.run(main())
