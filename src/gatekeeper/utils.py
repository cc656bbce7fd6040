from __future__ import annotations

import io
import logging
from typing import Any

import discord

from .constants import COLORS, MAX_EMBED_TITLE, MAX_FIELD_VALUE
from .models import Response

log = logging.getLogger("gatekeeper.utils")


def trim_string(text: str, length: int) -> str:
    """Trim text to fit a limit, marking the cut with an ellipsis."""
    if len(text) <= length:
        return text
    return f"{text[:length - 3].rstrip()}..."


def safe_embed(title: str, description: str, color: discord.Color = COLORS["info"]) -> discord.Embed:
    return discord.Embed(title=trim_string(title, MAX_EMBED_TITLE), description=description, color=color)


def error_embed(message: str) -> discord.Embed:
    return safe_embed("Error", message, COLORS["error"])


def info_embed(message: str) -> discord.Embed:
    return safe_embed("Information", message, COLORS["info"])


def staff_label(member: Any) -> str:
    """How a staff member is credited on review posts."""
    return f"{member.name} ({member.id})"


async def safe_response(
    interaction: discord.Interaction,
    content: str | None = None,
    embed: discord.Embed | None = None,
    ephemeral: bool = True,
    **kwargs: Any,
) -> bool:
    """Reply to an interaction whether or not it was already answered or deferred."""
    try:
        if interaction.response.is_done():
            await interaction.followup.send(content=content, embed=embed, ephemeral=ephemeral, **kwargs)
        else:
            await interaction.response.send_message(content=content, embed=embed, ephemeral=ephemeral, **kwargs)
        return True
    except discord.HTTPException as e:
        log.error("Failed to send response: %s", e)
        return False


async def send_result(interaction: discord.Interaction, result: Response) -> bool:
    if result.success:
        return await safe_response(interaction, result.message)
    return await safe_response(interaction, embed=error_embed(result.message))


def mention_list(user_ids: list[int]) -> str:
    return trim_string(", ".join(f"<@{uid}>" for uid in user_ids), MAX_FIELD_VALUE)


async def export_transcript(channel: Any, log_channel: Any, applicant_id: int) -> None:
    """Post a channel's full history to the log channel as a text attachment."""
    lines: list[str] = []
    async for message in channel.history(limit=None, oldest_first=True):
        stamp = message.created_at.strftime("%Y-%m-%d %H:%M:%S")
        lines.append(f"[{stamp}] {message.author.name} ({message.author.id}): {message.clean_content}")
        for attachment in message.attachments:
            lines.append(f"    attachment: {attachment.url}")

    data = "\n".join(lines).encode("utf-8")
    file = discord.File(io.BytesIO(data), filename=f"{channel.name}.txt")
    await log_channel.send(content=f"Questioning transcript for <@{applicant_id}> ({applicant_id})", file=file)
    log.info("Exported %d transcript line(s) from #%s", len(lines), channel.name)
