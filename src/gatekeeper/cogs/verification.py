from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable

import discord
from discord import app_commands
from discord.ext import commands

from ..constants import (
    APPROVE_BUTTON,
    BAN_BUTTON,
    BAN_MENU,
    CONFIRM_BUTTON,
    CUSTOM_REASON,
    ERROR_MESSAGES,
    KICK_BUTTON,
    KICK_MENU,
    QUESTION_BUTTON,
    RETRY_BUTTON,
    VERIFY_BUTTON,
)
from ..errors import GatekeeperError, NotFoundError
from ..models import Response
from ..ui.components import parse_custom_id
from ..utils import error_embed, safe_response, send_result
from ..verification import abandonment, opt_out
from ..verification.pipeline import VerificationPipeline
from ..verification.review import StaffReview

log = logging.getLogger("gatekeeper.cogs.verification")

Handler = Callable[..., Awaitable[None]]


class VerificationCog(commands.Cog):
    """Routes platform events into the verification workflow."""

    # custom id prefix -> handler method name
    INTERACTION_HANDLERS: dict[str, str] = {
        VERIFY_BUTTON: "_on_verify",
        CONFIRM_BUTTON: "_on_confirm",
        RETRY_BUTTON: "_on_retry",
        APPROVE_BUTTON: "_on_approve",
        QUESTION_BUTTON: "_on_question",
        KICK_BUTTON: "_on_kick",
        BAN_BUTTON: "_on_ban",
        KICK_MENU: "_on_kick_reason",
        BAN_MENU: "_on_ban_reason",
    }
    STAFF_PREFIXES = frozenset({APPROVE_BUTTON, QUESTION_BUTTON, KICK_BUTTON, BAN_BUTTON, KICK_MENU, BAN_MENU})

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot
        self.ctx = bot.verification  # type: ignore[attr-defined]
        self.pipeline: VerificationPipeline = bot.pipeline  # type: ignore[attr-defined]
        self.review: StaffReview = bot.review  # type: ignore[attr-defined]
        self.executor = bot.executor  # type: ignore[attr-defined]
        self._started = time.monotonic()
        self._scanned = False

    # ----- dispatch -----

    def _warming_up(self) -> bool:
        return time.monotonic() - self._started < self.ctx.settings.uptime_grace_seconds

    @commands.Cog.listener()
    async def on_interaction(self, interaction: discord.Interaction) -> None:
        if interaction.type != discord.InteractionType.component or not interaction.data:
            return
        prefix, args = parse_custom_id(str(interaction.data.get("custom_id", "")))
        name = self.INTERACTION_HANDLERS.get(prefix)
        if name is None or not all(arg.isdigit() for arg in args):
            return
        if prefix in self.STAFF_PREFIXES and self._warming_up():
            await safe_response(interaction, embed=error_embed(ERROR_MESSAGES["starting_up"]))
            return

        handler: Handler = getattr(self, name)
        try:
            await handler(interaction, *args)
        except GatekeeperError as e:
            await safe_response(interaction, embed=error_embed(str(e)))
        except discord.HTTPException:
            log.exception("Discord request failed while handling %s", prefix)
            await safe_response(interaction, embed=error_embed(ERROR_MESSAGES["unexpected"]))

    async def _staff_context(self, interaction: discord.Interaction) -> tuple[Any, Any] | None:
        guild = interaction.guild
        if guild is None or not isinstance(interaction.user, discord.Member):
            await safe_response(interaction, embed=error_embed(ERROR_MESSAGES["guild_only"]))
            return None
        await interaction.response.defer(ephemeral=True)
        return guild, interaction.user

    # ----- applicant -----

    async def _on_verify(self, interaction: discord.Interaction, guild_id: str) -> None:
        guild = interaction.guild or self.bot.get_guild(int(guild_id))
        if guild is None:
            await safe_response(interaction, embed=error_embed(ERROR_MESSAGES["guild_only"]))
            return
        await interaction.response.defer(ephemeral=True)
        started, channel = await self.pipeline.start(guild, interaction.user)
        await send_result(interaction, started)
        if started.success:
            result = await self.pipeline.interview(guild, interaction.user, channel)
            if not result.success:
                await send_result(interaction, result)

    async def _dm_guild(self, interaction: discord.Interaction, guild_id: str, user_id: str) -> Any:
        if int(user_id) != interaction.user.id:
            await safe_response(interaction, embed=error_embed("This isn't your application."))
            return None
        guild = self.bot.get_guild(int(guild_id))
        if guild is None:
            raise NotFoundError("I'm no longer in that server.")
        return guild

    async def _on_confirm(self, interaction: discord.Interaction, guild_id: str, user_id: str) -> None:
        guild = await self._dm_guild(interaction, guild_id, user_id)
        if guild is None:
            return
        await interaction.response.edit_message(view=None)
        result = await self.pipeline.confirm(guild, interaction.user)
        if not result.success and interaction.message is not None:
            await self.pipeline.restore_choice(guild, interaction.user, interaction.message)
        await send_result(interaction, result)

    async def _on_retry(self, interaction: discord.Interaction, guild_id: str, user_id: str) -> None:
        guild = await self._dm_guild(interaction, guild_id, user_id)
        if guild is None:
            return
        await interaction.response.edit_message(view=None)
        await safe_response(interaction, "Retrying application:", ephemeral=False)
        result = await self.pipeline.retry(guild, interaction.user, interaction.channel)
        if not result.success and interaction.message is not None:
            await self.pipeline.restore_choice(guild, interaction.user, interaction.message)
        await send_result(interaction, result)

    # ----- staff -----

    async def _on_approve(self, interaction: discord.Interaction, *_: str) -> None:
        staff = await self._staff_context(interaction)
        if staff is None:
            return
        result = await self.review.approve(*staff, interaction.message)
        await send_result(interaction, result)

    async def _on_question(self, interaction: discord.Interaction, *_: str) -> None:
        staff = await self._staff_context(interaction)
        if staff is None:
            return
        result = await self.review.question(*staff, interaction.message)
        await send_result(interaction, result)

    async def _begin(self, interaction: discord.Interaction, action: str) -> None:
        staff = await self._staff_context(interaction)
        if staff is None:
            return
        result, view = await self.review.begin_action(*staff, interaction.message, action)
        if view is None:
            await send_result(interaction, result)
            return
        await interaction.followup.send(result.message, view=view, ephemeral=True)

    async def _on_kick(self, interaction: discord.Interaction, *_: str) -> None:
        await self._begin(interaction, "kick")

    async def _on_ban(self, interaction: discord.Interaction, *_: str) -> None:
        await self._begin(interaction, "ban")

    async def _reason(self, interaction: discord.Interaction, action: str, channel_id: str, message_id: str) -> None:
        staff = await self._staff_context(interaction)
        if staff is None:
            return
        guild, actor = staff
        values = (interaction.data or {}).get("values") or []
        choice = str(values[0]) if values else ""

        reason: str | None = choice
        if choice == CUSTOM_REASON:
            denied = await self.review.holder_for_message(guild, actor, int(message_id), action)
            if denied is not None:
                await send_result(interaction, denied)
                return
            timeout = self.ctx.settings.reason_timeout_seconds
            await interaction.followup.send(
                f"Type the reason in this channel within {timeout} seconds.", ephemeral=True
            )
            reason = await self.executor.capture_custom_reason(interaction.channel, actor)

        result = await self.review.finish_action(guild, actor, action, int(channel_id), int(message_id), reason)
        await send_result(interaction, result)

    async def _on_kick_reason(self, interaction: discord.Interaction, channel_id: str, message_id: str) -> None:
        await self._reason(interaction, "kick", channel_id, message_id)

    async def _on_ban_reason(self, interaction: discord.Interaction, channel_id: str, message_id: str) -> None:
        await self._reason(interaction, "ban", channel_id, message_id)

    # ----- questioning channel commands -----

    @app_commands.command(name="approve", description="Approve the applicant being questioned in this channel.")
    @app_commands.guild_only()
    async def approve_command(self, interaction: discord.Interaction) -> None:
        staff = await self._staff_context(interaction)
        if staff is None:
            return
        result = await self.review.approve_in_channel(*staff, interaction.channel)
        await send_result(interaction, result)

    @app_commands.command(name="deny", description="Kick or ban the applicant being questioned in this channel.")
    @app_commands.guild_only()
    @app_commands.describe(action="Choose to kick or ban the user")
    @app_commands.choices(
        action=[app_commands.Choice(name="Kick", value="kick"), app_commands.Choice(name="Ban", value="ban")]
    )
    async def deny_command(self, interaction: discord.Interaction, action: str) -> None:
        staff = await self._staff_context(interaction)
        if staff is None:
            return
        result, view = await self.review.deny_in_channel(*staff, interaction.channel, action)
        if view is None:
            await send_result(interaction, result)
            return
        await interaction.followup.send(result.message, view=view, ephemeral=True)

    @app_commands.command(name="clear", description="Remove a stuck pending application.")
    @app_commands.guild_only()
    @app_commands.default_permissions(administrator=True)
    @app_commands.checks.has_permissions(administrator=True)
    @app_commands.describe(user_id="ID of the applicant")
    async def clear_command(self, interaction: discord.Interaction, user_id: str) -> None:
        staff = await self._staff_context(interaction)
        if staff is None:
            return
        if not user_id.isdigit():
            await send_result(interaction, Response.fail("That isn't a valid user ID."))
            return
        result = await self.review.clear(*staff, int(user_id))
        await send_result(interaction, result)

    # ----- gateway events -----

    @commands.Cog.listener()
    async def on_member_remove(self, member: discord.Member) -> None:
        await abandonment.handle_member_left(self.ctx, self.review, self.executor, member.guild, member)

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        if message.guild is None or not message.author.bot:
            return
        await opt_out.handle_history_message(self.ctx, message)

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        if self._scanned:
            return
        self._scanned = True
        for guild in list(self.bot.guilds):
            try:
                await opt_out.scan_history(self.ctx, guild)
            except discord.HTTPException:
                log.exception("Opt-out scan failed for guild %s", guild.id)
