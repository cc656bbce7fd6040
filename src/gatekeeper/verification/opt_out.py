"""Opt-out detection from the verification history channel.

A server-protector bot posts an embed per user into that channel; any user it
names there must get every configured approver's sign-off.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import discord

from .context import VerificationContext

log = logging.getLogger("gatekeeper.opt_out")


def protector_username(message: Any, protector_id: int, marker: str) -> Optional[str]:
    """Username named by a protector post, or None if the message isn't one."""
    if message.author.id != protector_id or not message.embeds:
        return None
    title = message.embeds[0].title or ""
    if marker not in title:
        return None
    first = title.split(" ")[0].split("#")[0]
    return first or None


async def _opt_out_username(ctx: VerificationContext, guild: Any, username: str) -> bool:
    member = discord.utils.find(lambda m: m.name == username, guild.members)
    if member is None:
        return False
    result = await ctx.opt_outs.add(member.id)
    if result.success:
        log.info("Opted out %s (%s) in guild %s", member.id, username, guild.id)
    return result.success


async def _history_channel(ctx: VerificationContext, guild: Any) -> Optional[Any]:
    channel = await ctx.resolver.text_channel(guild, "verification_history_channel_id")
    if channel is None:
        return None
    perms = channel.permissions_for(guild.me)
    if not (perms.view_channel and perms.read_message_history):
        return None
    return channel


async def scan_history(ctx: VerificationContext, guild: Any) -> int:
    """Walk the whole history channel once and record every opted-out user."""
    settings = ctx.settings
    if not settings.protector_bot_id:
        return 0
    channel = await _history_channel(ctx, guild)
    if channel is None:
        return 0

    added = 0
    async for message in channel.history(limit=None):
        username = protector_username(message, settings.protector_bot_id, settings.protector_message)
        if username and await _opt_out_username(ctx, guild, username):
            added += 1
    log.info("Opt-out scan of guild %s added %d user(s)", guild.id, added)
    return added


async def handle_history_message(ctx: VerificationContext, message: Any) -> bool:
    guild = message.guild
    settings = ctx.settings
    if guild is None or not settings.protector_bot_id:
        return False
    username = protector_username(message, settings.protector_bot_id, settings.protector_message)
    if username is None:
        return False
    channel = await _history_channel(ctx, guild)
    if channel is None or channel.id != message.channel.id:
        return False
    return await _opt_out_username(ctx, guild, username)
