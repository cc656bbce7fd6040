from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import discord

from ..constants import HANDLED_BY_FIELD, REASON_FIELD, STATE_BANNED, STATE_KICKED
from ..models import PendingApplication, Response
from ..ui.embeds import with_state
from ..utils import export_transcript, staff_label
from .context import VerificationContext

log = logging.getLogger("gatekeeper.executor")

_PAST_TENSE = {"kick": "kicked", "ban": "banned"}
_STATES = {"kick": STATE_KICKED, "ban": STATE_BANNED}


class ModerationExecutor:
    def __init__(self, ctx: VerificationContext) -> None:
        self._ctx = ctx

    async def capture_custom_reason(self, channel: Any, actor: Any) -> Optional[str]:
        """Let the actor type one message in the channel and return its text.

        The actor's previous overwrite on the channel is restored on every path.
        """
        previous = channel.overwrites_for(actor)
        allow, deny = previous.pair()
        granted = discord.PermissionOverwrite.from_pair(allow, deny)
        granted.send_messages = True
        try:
            await channel.set_permissions(actor, overwrite=granted, reason="Typing a custom moderation reason")
        except discord.HTTPException:
            log.warning("Couldn't let %s type a reason in #%s", actor.id, channel.name)
            return None
        try:
            message = await self._ctx.wait_for_message(actor.id, channel.id, self._ctx.settings.reason_timeout_seconds)
            try:
                await message.delete()
            except discord.HTTPException:
                log.warning("Couldn't delete custom reason message in #%s", channel.name)
            return message.clean_content.strip() or None
        except asyncio.TimeoutError:
            log.info("Staff %s didn't type a reason in time", actor.id)
            return None
        finally:
            restored = None if previous.is_empty() else previous
            try:
                await channel.set_permissions(actor, overwrite=restored, reason="Custom moderation reason captured")
            except discord.HTTPException:
                log.exception("Couldn't restore permissions for %s in #%s", actor.id, channel.name)

    async def close_questioning(self, guild: Any, app: PendingApplication) -> None:
        """Export the questioning channel transcript and delete the channel, if there is one."""
        if app.questioning_channel_id is None:
            return
        channel = guild.get_channel(app.questioning_channel_id)
        if channel is None:
            return
        log_channel = await self._ctx.resolver.text_channel(guild, "questioning_log_channel_id")
        if log_channel is not None:
            try:
                await export_transcript(channel, log_channel, app.applicant_id)
            except discord.HTTPException:
                log.exception("Couldn't export questioning transcript for %s", app.applicant_id)
        try:
            await channel.delete(reason="Questioning completed")
        except discord.HTTPException:
            log.warning("Couldn't delete questioning channel %s", channel.id)

    async def execute(
        self,
        guild: Any,
        actor: Any,
        app: PendingApplication,
        action: str,
        reason: str,
        review_message: Optional[Any],
    ) -> Response:
        """Notify, close questioning, kick or ban, finalize the review post, drop the record."""
        member = guild.get_member(app.applicant_id)
        if member is None:
            return Response.fail("Couldn't find the member.")
        past = _PAST_TENSE[action]

        try:
            await member.send(
                f"You've been {past} from {guild.name} during verification for the following reason: {reason}"
            )
        except discord.HTTPException:
            log.info("Couldn't DM %s about being %s", member.id, past)

        await self.close_questioning(guild, app)

        try:
            if action == "kick":
                await member.kick(reason=reason)
            else:
                await member.ban(reason=reason)
        except discord.HTTPException:
            log.exception("Failed to %s %s in guild %s", action, member.id, guild.id)
            return Response.fail(f"Couldn't {action} the member.")
        log.info("%s %s in guild %s by %s: %s", past.capitalize(), member.id, guild.id, actor.id, reason)

        try:
            if review_message is not None and review_message.embeds:
                embed = with_state(
                    review_message.embeds[0],
                    _STATES[action],
                    (HANDLED_BY_FIELD, staff_label(actor)),
                    (REASON_FIELD, reason),
                )
                await review_message.edit(embed=embed, view=None)
        except discord.HTTPException:
            log.warning("Couldn't update review post for %s", member.id)
        finally:
            await self._ctx.applications.remove(app.applicant_id, guild.id)
        return Response.ok(f"{member.name} has been {past}.")
