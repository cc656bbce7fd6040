from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import discord
from discord import app_commands
from discord.ext import commands

from ..constants import MAX_FIELD_VALUE, RESET_CONFIRM_TIMEOUT_SECONDS, TEXT_CAPTURE_TIMEOUT_SECONDS
from ..errors import NotFoundError, ReplyTimeoutError
from ..models import CommunityConfig, Response
from ..services.config_store import CommunityConfigStore
from ..ui.components import guide_view
from ..utils import info_embed, send_result, trim_string

log = logging.getLogger("gatekeeper.cogs.config")

_ADMIN = discord.Permissions(administrator=True)


def _numbered(items: list[str]) -> str:
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, start=1))


def settings_embed(guild_name: str, config: CommunityConfig) -> discord.Embed:
    """Every stored setting for a guild, with unset values marked."""

    def channel(cid: Optional[int]) -> str:
        return f"<#{cid}>" if cid else "Not set"

    def role(rid: Optional[int]) -> str:
        return f"<@&{rid}>" if rid else "Not set"

    def text(value: Optional[str]) -> str:
        return trim_string(value, MAX_FIELD_VALUE) if value else "Not set"

    rows = [
        ("Verification starting message", text(config.verification_message)),
        ("Verification ending message", text(config.verification_ending_message)),
        ("Verification questions", text(_numbered(config.verification_questions))),
        ("Verification log channel", channel(config.verification_log_channel_id)),
        ("Verification history channel", channel(config.verification_history_channel_id)),
        ("Verification approvers", text(", ".join(f"<@{uid}>" for uid in config.verification_approvers))),
        ("Questioning category", channel(config.questioning_category_id)),
        ("Questioning log channel", channel(config.questioning_log_channel_id)),
        ("Welcome channel", channel(config.welcome_channel_id)),
        ("Welcome message ([member] is replaced by a mention)", text(config.welcome_message)),
        ("Welcome toggle", "Enabled" if config.welcome_enabled else "Disabled"),
        ("Member role", role(config.member_role_id)),
        ("Unverified role", role(config.unverified_role_id)),
        ("Staff roles", text(", ".join(f"<@&{rid}>" for rid in config.staff_role_ids))),
        ("Kick reasons", text(_numbered(config.kick_reasons))),
        ("Ban reasons", text(_numbered(config.ban_reasons))),
        ("App log toggle", "Enabled" if config.app_log_enabled else "Disabled"),
        ("App log channel", channel(config.app_log_channel_id)),
    ]
    embed = discord.Embed(title=trim_string(f"List of configurations for {guild_name}", 256))
    for name, value in rows:
        embed.add_field(name=name, value=value, inline=False)
    return embed


class ConfigCommandsCog(commands.Cog):
    """Administrative slash commands for per-guild verification settings."""

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot
        self.store: CommunityConfigStore = bot.config_store  # type: ignore[attr-defined]

    verification = app_commands.Group(
        name="verification", description="Verification settings", guild_only=True, default_permissions=_ADMIN
    )
    v_message = app_commands.Group(name="message", description="Message sent before the questions", parent=verification)
    v_ending = app_commands.Group(name="ending", description="Message sent after the questions", parent=verification)
    v_question = app_commands.Group(name="question", description="Verification questions", parent=verification)
    v_log = app_commands.Group(name="log", description="Channel where applications are posted", parent=verification)
    v_history = app_commands.Group(name="history", description="Server protector history channel", parent=verification)

    questioning = app_commands.Group(
        name="questioning", description="Questioning settings", guild_only=True, default_permissions=_ADMIN
    )
    q_category = app_commands.Group(name="category", description="Category for questioning channels", parent=questioning)
    q_log = app_commands.Group(name="log", description="Channel for questioning transcripts", parent=questioning)

    welcome = app_commands.Group(
        name="welcome", description="Welcome settings", guild_only=True, default_permissions=_ADMIN
    )
    w_channel = app_commands.Group(name="channel", description="Welcome channel", parent=welcome)
    w_message = app_commands.Group(name="message", description="Welcome message", parent=welcome)
    w_toggle = app_commands.Group(name="toggle", description="Welcome message toggle", parent=welcome)

    roles = app_commands.Group(name="roles", description="Role settings", guild_only=True, default_permissions=_ADMIN)
    r_member = app_commands.Group(name="member", description="Role granted on approval", parent=roles)
    r_unverified = app_commands.Group(name="unverified", description="Role removed on approval", parent=roles)
    r_staff = app_commands.Group(name="staff", description="Roles allowed to handle applications", parent=roles)

    reason = app_commands.Group(
        name="reason", description="Preset moderation reasons", guild_only=True, default_permissions=_ADMIN
    )
    reason_kick = app_commands.Group(name="kick", description="Kick reasons", parent=reason)
    reason_ban = app_commands.Group(name="ban", description="Ban reasons", parent=reason)

    approver = app_commands.Group(
        name="approver", description="Approvers required for opted-out users", guild_only=True, default_permissions=_ADMIN
    )

    applog = app_commands.Group(
        name="applog", description="User-installed app logging", guild_only=True, default_permissions=_ADMIN
    )
    a_toggle = app_commands.Group(name="toggle", description="App log toggle", parent=applog)
    a_channel = app_commands.Group(name="channel", description="App log channel", parent=applog)

    guide = app_commands.Group(name="guide", description="Verify button post", guild_only=True, default_permissions=_ADMIN)

    # ----- helpers -----

    async def _capture_text(self, interaction: discord.Interaction, what: str) -> Optional[str]:
        """Ask the admin to type a multi-line value as their next message in the channel."""
        assert interaction.channel is not None
        await interaction.response.send_message(
            f"Send the {what} as your next message in this channel within {TEXT_CAPTURE_TIMEOUT_SECONDS} seconds.",
            ephemeral=True,
        )

        def check(message: discord.Message) -> bool:
            return message.author.id == interaction.user.id and message.channel.id == interaction.channel_id

        try:
            message = await self.bot.wait_for("message", check=check, timeout=TEXT_CAPTURE_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            raise ReplyTimeoutError("No message was provided in time.") from None
        content = message.content
        try:
            await message.delete()
        except discord.HTTPException:
            log.debug("Couldn't delete captured message %s", message.id)
        return content or None

    async def _set_text(self, interaction: discord.Interaction, field: str, what: str) -> None:
        assert interaction.guild is not None
        value = await self._capture_text(interaction, what)
        if value is None:
            return
        await send_result(interaction, await self.store.set_field(interaction.guild.id, field, value))

    async def _set(self, interaction: discord.Interaction, field: str, value: Any) -> None:
        assert interaction.guild is not None
        await send_result(interaction, await self.store.set_field(interaction.guild.id, field, value))

    async def _unset(self, interaction: discord.Interaction, field: str) -> None:
        assert interaction.guild is not None
        await send_result(interaction, await self.store.unset_field(interaction.guild.id, field))

    async def _add(self, interaction: discord.Interaction, field: str, value: Any) -> None:
        assert interaction.guild is not None
        await send_result(interaction, await self.store.add_to_list(interaction.guild.id, field, value))

    async def _remove_value(self, interaction: discord.Interaction, field: str, value: Any) -> None:
        assert interaction.guild is not None
        await send_result(interaction, await self.store.remove_from_list(interaction.guild.id, field, value=value))

    async def _remove_position(self, interaction: discord.Interaction, field: str, position: int) -> None:
        assert interaction.guild is not None
        result = await self.store.remove_from_list(interaction.guild.id, field, index=position - 1)
        await send_result(interaction, result)

    # ----- /verification -----

    @v_message.command(name="set", description="Set the message sent before the questions")
    async def v_message_set(self, interaction: discord.Interaction) -> None:
        await self._set_text(interaction, "verification_message", "verification message")

    @v_message.command(name="remove", description="Remove the message sent before the questions")
    async def v_message_remove(self, interaction: discord.Interaction) -> None:
        await self._unset(interaction, "verification_message")

    @v_ending.command(name="set", description="Set the message sent with the Confirm and Retry buttons")
    async def v_ending_set(self, interaction: discord.Interaction) -> None:
        await self._set_text(interaction, "verification_ending_message", "verification ending message")

    @v_ending.command(name="remove", description="Remove the verification ending message")
    async def v_ending_remove(self, interaction: discord.Interaction) -> None:
        await self._unset(interaction, "verification_ending_message")

    @v_question.command(name="add", description="Add a verification question")
    @app_commands.describe(question="The question to ask")
    async def v_question_add(self, interaction: discord.Interaction, question: str) -> None:
        await self._add(interaction, "verification_questions", question)

    @v_question.command(name="remove", description="Remove a verification question by position")
    @app_commands.describe(position="Position of the question, starting at 1")
    async def v_question_remove(
        self, interaction: discord.Interaction, position: app_commands.Range[int, 1, 100]
    ) -> None:
        await self._remove_position(interaction, "verification_questions", position)

    @v_question.command(name="move", description="Move a verification question to another position")
    @app_commands.describe(old="Current position", new="New position")
    async def v_question_move(
        self,
        interaction: discord.Interaction,
        old: app_commands.Range[int, 1, 100],
        new: app_commands.Range[int, 1, 100],
    ) -> None:
        assert interaction.guild is not None
        result = await self.store.move_in_list(interaction.guild.id, "verification_questions", old - 1, new - 1)
        await send_result(interaction, result)

    @v_log.command(name="set", description="Set the channel applications are posted in")
    async def v_log_set(self, interaction: discord.Interaction, channel: discord.TextChannel) -> None:
        await self._set(interaction, "verification_log_channel_id", channel.id)

    @v_log.command(name="remove", description="Remove the verification log channel")
    async def v_log_remove(self, interaction: discord.Interaction) -> None:
        await self._unset(interaction, "verification_log_channel_id")

    @v_history.command(name="set", description="Set the server protector history channel")
    async def v_history_set(self, interaction: discord.Interaction, channel: discord.TextChannel) -> None:
        await self._set(interaction, "verification_history_channel_id", channel.id)

    @v_history.command(name="remove", description="Remove the verification history channel")
    async def v_history_remove(self, interaction: discord.Interaction) -> None:
        await self._unset(interaction, "verification_history_channel_id")

    # ----- /questioning -----

    @q_category.command(name="set", description="Set the category questioning channels are created in")
    async def q_category_set(self, interaction: discord.Interaction, category: discord.CategoryChannel) -> None:
        await self._set(interaction, "questioning_category_id", category.id)

    @q_category.command(name="remove", description="Remove the questioning category")
    async def q_category_remove(self, interaction: discord.Interaction) -> None:
        await self._unset(interaction, "questioning_category_id")

    @q_log.command(name="set", description="Set the channel questioning transcripts are posted in")
    async def q_log_set(self, interaction: discord.Interaction, channel: discord.TextChannel) -> None:
        await self._set(interaction, "questioning_log_channel_id", channel.id)

    @q_log.command(name="remove", description="Remove the questioning log channel")
    async def q_log_remove(self, interaction: discord.Interaction) -> None:
        await self._unset(interaction, "questioning_log_channel_id")

    # ----- /welcome -----

    @w_channel.command(name="set", description="Set the welcome channel")
    async def w_channel_set(self, interaction: discord.Interaction, channel: discord.TextChannel) -> None:
        await self._set(interaction, "welcome_channel_id", channel.id)

    @w_channel.command(name="remove", description="Remove the welcome channel")
    async def w_channel_remove(self, interaction: discord.Interaction) -> None:
        await self._unset(interaction, "welcome_channel_id")

    @w_message.command(name="set", description="Set the welcome message, [member] is replaced by a mention")
    async def w_message_set(self, interaction: discord.Interaction) -> None:
        await self._set_text(interaction, "welcome_message", "welcome message")

    @w_message.command(name="remove", description="Remove the welcome message")
    async def w_message_remove(self, interaction: discord.Interaction) -> None:
        await self._unset(interaction, "welcome_message")

    @w_toggle.command(name="enable", description="Post the welcome message after approval")
    async def w_toggle_enable(self, interaction: discord.Interaction) -> None:
        await self._set(interaction, "welcome_enabled", True)

    @w_toggle.command(name="disable", description="Stop posting the welcome message")
    async def w_toggle_disable(self, interaction: discord.Interaction) -> None:
        await self._set(interaction, "welcome_enabled", False)

    # ----- /roles -----

    @r_member.command(name="set", description="Set the role granted on approval")
    async def r_member_set(self, interaction: discord.Interaction, role: discord.Role) -> None:
        await self._set(interaction, "member_role_id", role.id)

    @r_member.command(name="remove", description="Remove the member role")
    async def r_member_remove(self, interaction: discord.Interaction) -> None:
        await self._unset(interaction, "member_role_id")

    @r_unverified.command(name="set", description="Set the role removed on approval")
    async def r_unverified_set(self, interaction: discord.Interaction, role: discord.Role) -> None:
        await self._set(interaction, "unverified_role_id", role.id)

    @r_unverified.command(name="remove", description="Remove the unverified role")
    async def r_unverified_remove(self, interaction: discord.Interaction) -> None:
        await self._unset(interaction, "unverified_role_id")

    @r_staff.command(name="add", description="Add a staff role")
    async def r_staff_add(self, interaction: discord.Interaction, role: discord.Role) -> None:
        await self._add(interaction, "staff_role_ids", role.id)

    @r_staff.command(name="remove", description="Remove a staff role")
    async def r_staff_remove(self, interaction: discord.Interaction, role: discord.Role) -> None:
        await self._remove_value(interaction, "staff_role_ids", role.id)

    # ----- /reason -----

    @reason_kick.command(name="add", description="Add a preset kick reason")
    async def reason_kick_add(self, interaction: discord.Interaction, reason: str) -> None:
        await self._add(interaction, "kick_reasons", reason)

    @reason_kick.command(name="remove", description="Remove a preset kick reason by position")
    async def reason_kick_remove(
        self, interaction: discord.Interaction, position: app_commands.Range[int, 1, 25]
    ) -> None:
        await self._remove_position(interaction, "kick_reasons", position)

    @reason_ban.command(name="add", description="Add a preset ban reason")
    async def reason_ban_add(self, interaction: discord.Interaction, reason: str) -> None:
        await self._add(interaction, "ban_reasons", reason)

    @reason_ban.command(name="remove", description="Remove a preset ban reason by position")
    async def reason_ban_remove(
        self, interaction: discord.Interaction, position: app_commands.Range[int, 1, 25]
    ) -> None:
        await self._remove_position(interaction, "ban_reasons", position)

    # ----- /approver -----

    @approver.command(name="add", description="Add a user to the verification approvers")
    async def approver_add(self, interaction: discord.Interaction, user: discord.Member) -> None:
        await self._add(interaction, "verification_approvers", user.id)

    @approver.command(name="remove", description="Remove a user from the verification approvers")
    async def approver_remove(self, interaction: discord.Interaction, user: discord.Member) -> None:
        await self._remove_value(interaction, "verification_approvers", user.id)

    @approver.command(name="list", description="List all verification approvers")
    async def approver_list(self, interaction: discord.Interaction) -> None:
        assert interaction.guild is not None
        approvers = await self.bot.resolver.members(interaction.guild, "verification_approvers")  # type: ignore[attr-defined]
        if not approvers:
            raise NotFoundError("No verification approvers found.")
        mentions = "\n".join(member.mention for member in approvers)
        await send_result(interaction, Response.ok(f"Verification approvers:\n{mentions}"))

    # ----- /applog -----

    @a_toggle.command(name="enable", description="Log messages produced by user-installed apps")
    async def a_toggle_enable(self, interaction: discord.Interaction) -> None:
        await self._set(interaction, "app_log_enabled", True)

    @a_toggle.command(name="disable", description="Stop logging user-installed apps")
    async def a_toggle_disable(self, interaction: discord.Interaction) -> None:
        await self._set(interaction, "app_log_enabled", False)

    @a_channel.command(name="set", description="Set the app log channel")
    async def a_channel_set(self, interaction: discord.Interaction, channel: discord.TextChannel) -> None:
        await self._set(interaction, "app_log_channel_id", channel.id)

    @a_channel.command(name="remove", description="Remove the app log channel")
    async def a_channel_remove(self, interaction: discord.Interaction) -> None:
        await self._unset(interaction, "app_log_channel_id")

    # ----- /guide -----

    @guide.command(name="post", description="Post a message with the Verify button")
    @app_commands.describe(channel="Where the Verify button is posted")
    async def guide_post(self, interaction: discord.Interaction, channel: discord.TextChannel) -> None:
        assert interaction.guild is not None
        text = await self._capture_text(interaction, "guide message")
        if text is None:
            return
        try:
            message = await channel.send(text, view=guide_view(interaction.guild.id))
        except discord.HTTPException:
            await send_result(interaction, Response.fail(f"Couldn't post in {channel.mention}."))
            return
        await send_result(interaction, Response.ok(f"Guide posted: {message.jump_url}"))

    # ----- /list, /reset -----

    @app_commands.command(name="list", description="Show every verification setting for this server")
    @app_commands.guild_only()
    @app_commands.default_permissions(administrator=True)
    async def list_settings(self, interaction: discord.Interaction) -> None:
        assert interaction.guild is not None
        await interaction.response.defer(ephemeral=True)
        config = await self.store.get(interaction.guild.id)
        await interaction.followup.send(embed=settings_embed(interaction.guild.name, config), ephemeral=True)

    @app_commands.command(name="reset", description="Remove every verification setting for this server")
    @app_commands.guild_only()
    @app_commands.default_permissions(administrator=True)
    @app_commands.checks.has_permissions(administrator=True)
    async def reset(self, interaction: discord.Interaction) -> None:
        assert interaction.guild is not None
        await interaction.response.send_message(
            embed=info_embed(
                f"Type `confirm` within {RESET_CONFIRM_TIMEOUT_SECONDS} seconds to remove every setting for this server."
            ),
            ephemeral=True,
        )

        def check(message: discord.Message) -> bool:
            return (
                message.author.id == interaction.user.id
                and message.channel.id == interaction.channel_id
                and message.content.lower() == "confirm"
            )

        try:
            await self.bot.wait_for("message", check=check, timeout=RESET_CONFIRM_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            raise ReplyTimeoutError("Reset cancelled. No confirmation received.") from None
        await send_result(interaction, await self.store.reset(interaction.guild.id))
