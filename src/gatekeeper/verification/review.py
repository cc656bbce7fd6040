from __future__ import annotations

import logging
from typing import Any, Optional

import discord

from ..constants import (
    ERROR_MESSAGES,
    HANDLED_BY_FIELD,
    QUESTIONED_BY_FIELD,
    STATE_APPROVED,
    STATE_CLEARED,
    STATE_QUESTIONED,
    WELCOME_MEMBER_PLACEHOLDER,
)
from ..errors import PermissionDeniedError
from ..models import PendingApplication, Response
from ..permissions import require_action, require_staff
from ..ui.components import reason_view
from ..ui.embeds import is_terminal, with_approvers, with_state
from ..utils import staff_label
from .context import VerificationContext
from .executor import ModerationExecutor

log = logging.getLogger("gatekeeper.review")


class StaffReview:
    """Staff actions on a review post or inside a questioning channel.

    Every entry point checks, in order, that the actor is staff, that actor and
    bot can perform the action, and that the applicant can be moderated, before
    anything is written.
    """

    def __init__(self, ctx: VerificationContext, executor: ModerationExecutor) -> None:
        self._ctx = ctx
        self._executor = executor

    async def _require_staff(self, guild: Any, actor: Any) -> None:
        config = await self._ctx.configs.get(guild.id)
        require_staff(actor, config.staff_role_ids)

    async def fetch_review_message(self, guild: Any, app: PendingApplication) -> Optional[Any]:
        if app.review_message_id is None:
            return None
        channel = await self._ctx.resolver.text_channel(guild, "verification_log_channel_id")
        if channel is None:
            return None
        try:
            return await channel.fetch_message(app.review_message_id)
        except discord.HTTPException:
            log.warning("Review post %s for %s is gone", app.review_message_id, app.applicant_id)
            return None

    async def _from_questioning_channel(self, channel: Any) -> Optional[PendingApplication]:
        return await self._ctx.applications.get_by_questioning_channel(channel.id)

    # ----- approve -----

    async def approve(self, guild: Any, actor: Any, review_message: Any) -> Response:
        try:
            await self._require_staff(guild, actor)
        except PermissionDeniedError as e:
            return Response.fail(str(e))
        app = await self._ctx.applications.get_by_review_message(review_message.id)
        if app is None:
            return Response.fail("Couldn't find the pending application.")
        return await self._approve(guild, actor, app, review_message)

    async def approve_in_channel(self, guild: Any, actor: Any, channel: Any) -> Response:
        try:
            await self._require_staff(guild, actor)
        except PermissionDeniedError as e:
            return Response.fail(str(e))
        app = await self._from_questioning_channel(channel)
        if app is None:
            return Response.fail("This isn't a questioning channel.")
        return await self._approve(guild, actor, app, await self.fetch_review_message(guild, app))

    async def _approve(
        self, guild: Any, actor: Any, app: PendingApplication, review_message: Optional[Any]
    ) -> Response:
        if app.required_approvers:
            if actor.id not in app.required_approvers:
                return Response.fail("Still waiting for approvals from the required approvers.")
            remaining = await self._ctx.applications.remove_approver(app.applicant_id, guild.id, actor.id)
            if remaining is None:
                return Response.fail("You already approved this application.")
            if review_message is not None and review_message.embeds:
                try:
                    await review_message.edit(embed=with_approvers(review_message.embeds[0], remaining))
                except discord.HTTPException:
                    log.warning("Couldn't update approvals on review post %s", review_message.id)
            log.info("Staff %s approved %s in guild %s, %d approval(s) left", actor.id, app.applicant_id, guild.id, len(remaining))
            if remaining:
                return Response.ok("Approved, waiting for approvals from the remaining approvers.")
        return await self._admit(guild, actor, app, review_message)

    async def _admit(
        self, guild: Any, actor: Any, app: PendingApplication, review_message: Optional[Any]
    ) -> Response:
        resolver = self._ctx.resolver
        member_role = await resolver.role(guild, "member_role_id")
        if member_role is None:
            return Response.fail("Couldn't find the member role.")
        member = guild.get_member(app.applicant_id)
        if member is None:
            return Response.fail("Couldn't find the member.")

        unverified_role = await resolver.role(guild, "unverified_role_id")
        try:
            if unverified_role is not None:
                await member.remove_roles(unverified_role, reason="Verification approved")
            await member.add_roles(member_role, reason="Verification approved")
        except discord.HTTPException:
            log.exception("Couldn't update roles for %s in guild %s", member.id, guild.id)
            return Response.fail("Couldn't update the member's roles, check my role position.")

        if review_message is not None and review_message.embeds:
            try:
                embed = with_state(review_message.embeds[0], STATE_APPROVED, (HANDLED_BY_FIELD, staff_label(actor)))
                await review_message.edit(embed=embed, view=None)
            except discord.HTTPException:
                log.warning("Couldn't mark review post %s approved", review_message.id)

        await self._executor.close_questioning(guild, app)
        await self._ctx.applications.remove(app.applicant_id, guild.id)
        log.info("Admitted %s in guild %s (handled by %s)", member.id, guild.id, actor.id)

        await self._welcome(guild, member)
        return Response.ok(f"{member.name} has been approved.")

    async def _welcome(self, guild: Any, member: Any) -> None:
        config = await self._ctx.configs.get(guild.id)
        if not config.welcome_enabled or not config.welcome_message:
            return
        channel = await self._ctx.resolver.text_channel(guild, "welcome_channel_id")
        if channel is None:
            return
        text = config.welcome_message.replace(WELCOME_MEMBER_PLACEHOLDER, member.mention)
        try:
            await channel.send(text)
        except discord.HTTPException:
            log.warning("Couldn't post welcome message in guild %s", guild.id)

    # ----- question -----

    async def question(self, guild: Any, actor: Any, review_message: Any) -> Response:
        try:
            await self._require_staff(guild, actor)
        except PermissionDeniedError as e:
            return Response.fail(str(e))
        app = await self._ctx.applications.get_by_review_message(review_message.id)
        if app is None:
            return Response.fail("Couldn't find the pending application.")
        if app.questioning_channel_id is not None:
            return Response.fail("This applicant is already being questioned.")
        member = guild.get_member(app.applicant_id)
        if member is None:
            return Response.fail("Couldn't find the member.")
        category = await self._ctx.resolver.category(guild, "questioning_category_id")
        if category is None:
            return Response.fail("The questioning category isn't set.")

        overwrites = {
            member: discord.PermissionOverwrite(view_channel=True, send_messages=True, read_message_history=True)
        }
        try:
            channel = await category.create_text_channel(f"{member.name}-questioning", overwrites=overwrites)
        except discord.HTTPException:
            log.exception("Couldn't create questioning channel for %s", member.id)
            return Response.fail("Something went wrong when creating the questioning channel.")

        await self._ctx.applications.set_questioning_channel_id(member.id, guild.id, channel.id)
        if review_message.embeds:
            try:
                embed = with_state(review_message.embeds[0], STATE_QUESTIONED, (QUESTIONED_BY_FIELD, staff_label(actor)))
                await review_message.edit(embed=embed, view=None)
            except discord.HTTPException:
                log.warning("Couldn't mark review post %s questioned", review_message.id)
        log.info("Staff %s opened questioning for %s in guild %s", actor.id, member.id, guild.id)
        return Response.ok(f"Questioning started in {channel.mention}.")

    # ----- kick / ban -----

    async def begin_action(
        self, guild: Any, actor: Any, review_message: Any, action: str
    ) -> tuple[Response, Optional[discord.ui.View]]:
        app = await self._ctx.applications.get_by_review_message(review_message.id)
        if app is None:
            return Response.fail("Couldn't find the pending application."), None
        return await self._begin_action(guild, actor, app, action)

    async def deny_in_channel(
        self, guild: Any, actor: Any, channel: Any, action: str
    ) -> tuple[Response, Optional[discord.ui.View]]:
        app = await self._from_questioning_channel(channel)
        if app is None:
            return Response.fail("This isn't a questioning channel."), None
        return await self._begin_action(guild, actor, app, action)

    async def _begin_action(
        self, guild: Any, actor: Any, app: PendingApplication, action: str
    ) -> tuple[Response, Optional[discord.ui.View]]:
        try:
            await self._require_staff(guild, actor)
            member = guild.get_member(app.applicant_id)
            if member is None:
                return Response.fail("Couldn't find the member."), None
            require_action(guild, actor, member, action)
        except PermissionDeniedError as e:
            return Response.fail(str(e)), None

        if app.review_message_id is None:
            return Response.fail("This application hasn't been posted for review yet."), None
        log_channel = await self._ctx.resolver.text_channel(guild, "verification_log_channel_id")
        if log_channel is None:
            return Response.fail("Couldn't find the verification log channel."), None

        apps = self._ctx.applications
        acquired = await apps.acquire_lock(app.applicant_id, guild.id, actor.id, self._ctx.clock())
        if not acquired:
            current = await apps.get(app.applicant_id, guild.id)
            if current is None or current.lock_holder_id != actor.id:
                log.info("Staff %s blocked from %s on %s: locked", actor.id, action, app.applicant_id)
                return Response.fail(ERROR_MESSAGES["locked"]), None

        config = await self._ctx.configs.get(guild.id)
        reasons = config.kick_reasons if action == "kick" else config.ban_reasons
        view = reason_view(action, reasons, log_channel.id, app.review_message_id)
        return Response.ok("Please pick a reason or enter a custom one."), view

    async def finish_action(
        self,
        guild: Any,
        actor: Any,
        action: str,
        log_channel_id: int,
        message_id: int,
        reason: Optional[str],
    ) -> Response:
        """Run the action once a reason is known. Only the lock holder gets here."""
        app = await self._ctx.applications.get_by_review_message(message_id)
        if app is None:
            return Response.fail("Couldn't find the pending application.")
        denied = await self.check_holder(guild, actor, app, action)
        if denied is not None:
            return denied
        if not reason:
            return Response.fail("No reason was provided in time.")

        review_message = None
        log_channel = guild.get_channel(log_channel_id)
        if log_channel is not None:
            try:
                review_message = await log_channel.fetch_message(message_id)
            except discord.HTTPException:
                log.warning("Review post %s is gone", message_id)
        return await self._executor.execute(guild, actor, app, action, reason, review_message)

    async def check_holder(
        self, guild: Any, actor: Any, app: PendingApplication, action: str
    ) -> Optional[Response]:
        try:
            await self._require_staff(guild, actor)
            require_action(guild, actor, guild.get_member(app.applicant_id), action)
        except PermissionDeniedError as e:
            return Response.fail(str(e))
        if app.lock_holder_id is None:
            return Response.fail(f"Your hold on this application expired, press {action.capitalize()} again.")
        if app.lock_holder_id != actor.id:
            return Response.fail(ERROR_MESSAGES["locked"])
        return None

    async def holder_for_message(self, guild: Any, actor: Any, message_id: int, action: str) -> Optional[Response]:
        """Gate run before prompting for a custom reason."""
        app = await self._ctx.applications.get_by_review_message(message_id)
        if app is None:
            return Response.fail("Couldn't find the pending application.")
        return await self.check_holder(guild, actor, app, action)

    # ----- clear -----

    async def clear(self, guild: Any, actor: Any, applicant_id: int) -> Response:
        app = await self._ctx.applications.get(applicant_id, guild.id)
        if app is None:
            return Response.fail("Couldn't find a pending application for that user.")
        await self._executor.close_questioning(guild, app)
        review_message = await self.fetch_review_message(guild, app)
        if review_message is not None and review_message.embeds and not is_terminal(review_message.embeds[0]):
            try:
                embed = with_state(review_message.embeds[0], STATE_CLEARED, (HANDLED_BY_FIELD, staff_label(actor)))
                await review_message.edit(embed=embed, view=None)
            except discord.HTTPException:
                log.warning("Couldn't mark review post %s cleared", review_message.id)
        await self._ctx.applications.remove(applicant_id, guild.id)
        log.info("Staff %s cleared the application of %s in guild %s", actor.id, applicant_id, guild.id)
        return Response.ok("The pending application was cleared.")
