import logging

import discord
from discord.ext import commands

from voicerecap.context import Context
from voicerecap.services.voice_session_manager.manager import (
    JoinResult,
    LeaveResult,
    RecapOutcome,
)
from voicerecap.utils import parse_command

logger = logging.getLogger(__name__)

# -------------------------------------------------------------- #
# User-facing Messages
# -------------------------------------------------------------- #

JOINED_MESSAGE = "Joined voice channel and started recording."
NOT_IN_VOICE_MESSAGE = "You need to be in a voice channel first!"
ALREADY_RECORDING_MESSAGE = "Already recording in this server. Use `{prefix}leave` first."
SHUTTING_DOWN_MESSAGE = "The bot is shutting down, try again later."
JOIN_FAILED_MESSAGE = "Failed to join voice channel."

NOT_ACTIVE_MESSAGE = "Not currently in a voice channel."
NO_AUDIO_MESSAGE = "No audio was recorded."
NO_SPEECH_MESSAGE = "No clear speech detected in the recording."
SUMMARY_MESSAGE = "📝 **Summary of the conversation:**\n{summary}"
LEFT_MESSAGE = "Left voice channel."
LEAVE_FAILED_MESSAGE = "Failed to process recording."

DISCORD_MESSAGE_LIMIT = 2000


# -------------------------------------------------------------- #
# Cog
# -------------------------------------------------------------- #


class Voice(commands.Cog):
    """Prefix commands that start and stop call recording."""

    def __init__(self, context: Context):
        self.context = context
        self.bot = context.bot
        self.services = context.services_manager
        self.prefix = context.config.prefix

        self.command_handlers = {
            "join": self.handle_join_command,
            "leave": self.handle_leave_command,
        }

    # -------------------------------------------------------------- #
    # Utils
    # -------------------------------------------------------------- #

    def find_user_vc(self, message: discord.Message) -> discord.VoiceChannel | None:
        """Find the voice channel the message author is in, if any."""
        voice_state = getattr(message.author, "voice", None)
        return voice_state.channel if voice_state else None

    # -------------------------------------------------------------- #
    # Event Handler Filter
    # -------------------------------------------------------------- #

    async def filter_message(self, message: discord.Message) -> bool:
        """Accept prefixed messages naming one of this cog's commands, from non-bot users."""
        if message.author.bot:
            return False

        parsed = parse_command(message.content, self.prefix)
        return parsed is not None and parsed[0] in self.command_handlers

    async def handle_message(self, message: discord.Message) -> bool:
        """Dispatch a command message to its handler.

        Returns:
            False to stop propagation, the command has been consumed
        """
        command, _ = parse_command(message.content, self.prefix)
        await self.command_handlers[command](message)
        return False

    # -------------------------------------------------------------- #
    # Commands
    # -------------------------------------------------------------- #

    async def handle_join_command(self, message: discord.Message) -> None:
        voice_channel = self.find_user_vc(message)
        if voice_channel is None:
            await message.reply(NOT_IN_VOICE_MESSAGE)
            return

        guild_id = voice_channel.guild.id
        logger.info(f"Join requested by {message.author.id} for channel {voice_channel.id}")

        try:
            result = await self.services.voice_session_manager.join(guild_id, voice_channel)
        except Exception as e:
            await self.services.logging_service.error(
                f"Error joining voice channel {voice_channel.id} in guild {guild_id}: {e}"
            )
            await message.reply(JOIN_FAILED_MESSAGE)
            return

        if result == JoinResult.JOINED:
            await message.reply(JOINED_MESSAGE)
        elif result == JoinResult.ALREADY_ACTIVE:
            await message.reply(ALREADY_RECORDING_MESSAGE.format(prefix=self.prefix))
        elif result == JoinResult.SHUTTING_DOWN:
            await message.reply(SHUTTING_DOWN_MESSAGE)
        else:
            await message.reply(NOT_IN_VOICE_MESSAGE)

    async def handle_leave_command(self, message: discord.Message) -> None:
        if message.guild is None:
            return

        guild_id = message.guild.id
        logger.info(f"Leave requested by {message.author.id} in guild {guild_id}")

        try:
            result = await self.services.voice_session_manager.leave(guild_id)
        except Exception as e:
            await self.services.logging_service.error(
                f"Error processing recording for guild {guild_id}: {e}"
            )
            await message.reply(LEAVE_FAILED_MESSAGE)
            return

        if result.outcome == RecapOutcome.NOT_ACTIVE:
            await message.reply(NOT_ACTIVE_MESSAGE)
            return

        await self.post_recap(message, result)
        await message.reply(LEFT_MESSAGE)

    async def post_recap(self, message: discord.Message, result: LeaveResult) -> None:
        """Post the outcome of a finished recording to the command's channel."""
        if result.outcome == RecapOutcome.NO_AUDIO:
            await message.reply(NO_AUDIO_MESSAGE)
        elif result.outcome == RecapOutcome.NO_SPEECH:
            await message.channel.send(NO_SPEECH_MESSAGE)
        elif result.outcome == RecapOutcome.SUMMARY:
            content = SUMMARY_MESSAGE.format(summary=result.summary.text)
            if len(content) > DISCORD_MESSAGE_LIMIT:
                content = content[: DISCORD_MESSAGE_LIMIT - 1] + "…"
            await message.channel.send(content)


def setup(context: Context) -> Voice:
    """Setup function for the Voice cog.

    Args:
        context: The application context instance

    Returns:
        The initialized Voice cog instance
    """
    voice = Voice(context)
    context.bot.add_cog(voice)
    return voice
