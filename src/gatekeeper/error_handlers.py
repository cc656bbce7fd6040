from __future__ import annotations

import logging

import discord
from discord import app_commands
from discord.ext import commands

from .constants import ERROR_MESSAGES
from .errors import GatekeeperError
from .utils import error_embed, safe_response

log = logging.getLogger("gatekeeper.error_handlers")


class ErrorHandler(commands.Cog):
    """Centralized error handling for slash commands."""

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot
        self._previous = bot.tree.on_error

    async def cog_load(self) -> None:
        self.bot.tree.on_error = self.on_app_command_error  # type: ignore[assignment]

    async def cog_unload(self) -> None:
        self.bot.tree.on_error = self._previous  # type: ignore[assignment]

    async def on_app_command_error(
        self,
        interaction: discord.Interaction,
        error: app_commands.AppCommandError,
    ) -> None:
        if isinstance(error, app_commands.MissingPermissions):
            await safe_response(interaction, embed=error_embed(ERROR_MESSAGES["missing_permissions"]))
            return

        if isinstance(error, app_commands.NoPrivateMessage):
            await safe_response(interaction, embed=error_embed(ERROR_MESSAGES["guild_only"]))
            return

        if isinstance(error, app_commands.CommandOnCooldown):
            await safe_response(
                interaction,
                embed=error_embed(f"This command is on cooldown. Try again in {error.retry_after:.1f}s"),
            )
            return

        if isinstance(error, app_commands.BotMissingPermissions):
            await safe_response(interaction, embed=error_embed("The bot lacks required permissions to run this command."))
            return

        original = getattr(error, "original", error)
        if isinstance(original, GatekeeperError):
            await safe_response(interaction, embed=error_embed(str(original)))
            return

        log.error("Unexpected error in app command %s", interaction.command, exc_info=original)
        await safe_response(interaction, embed=error_embed(ERROR_MESSAGES["unexpected"]))


async def setup_error_handlers(bot: commands.Bot) -> None:
    await bot.add_cog(ErrorHandler(bot))
