from __future__ import annotations

import logging
from typing import Any, Optional

import discord
from discord.ext import commands

from ..constants import COLORS, MAX_FIELD_VALUE
from ..utils import trim_string

log = logging.getLogger("gatekeeper.cogs.app_log")


def user_app_invoker(message: Any) -> Optional[Any]:
    """The user whose own app installation produced this message, if any."""
    metadata = getattr(message, "interaction_metadata", None)
    if metadata is None:
        return None
    if not metadata.is_user_integration():
        return None
    return metadata.user


def app_log_embed(message: Any, user: Any) -> discord.Embed:
    embed = discord.Embed(color=COLORS["info"])
    embed.add_field(name="User", value=f"{user.name} ({user.id})", inline=False)
    embed.add_field(name="Application", value=f"{message.author.name} ({message.author.id})", inline=False)
    embed.add_field(name="Message url", value=message.jump_url, inline=False)
    if message.content:
        embed.add_field(name="Message text", value=trim_string(message.content, MAX_FIELD_VALUE), inline=False)
    if message.attachments:
        urls = "\n".join(attachment.url for attachment in message.attachments)
        embed.add_field(name="Attachments", value=trim_string(urls, MAX_FIELD_VALUE), inline=False)
    if message.embeds:
        embed.add_field(name="Embed count", value=str(len(message.embeds)), inline=False)
    return embed


class AppLogCog(commands.Cog):
    """Logs messages posted in the guild by apps a member installed on their own account."""

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        if message.guild is None or not message.author.bot:
            return
        user = user_app_invoker(message)
        if user is None:
            return

        config = await self.bot.config_store.get(message.guild.id)  # type: ignore[attr-defined]
        if not config.app_log_enabled:
            return
        channel = await self.bot.resolver.text_channel(message.guild, "app_log_channel_id")  # type: ignore[attr-defined]
        if channel is None or not channel.permissions_for(message.guild.me).send_messages:
            return
        try:
            await channel.send(embed=app_log_embed(message, user))
        except discord.HTTPException:
            log.warning("Couldn't write app log in guild %s", message.guild.id)
