from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import discord

from ..constants import MAX_ATTEMPTS
from ..models import PendingApplication, Response
from ..ui.components import attempt_view, review_view
from ..ui.embeds import review_embed
from .context import VerificationContext

log = logging.getLogger("gatekeeper.pipeline")


class VerificationPipeline:
    """Applicant side of verification: intro, questions, confirm or retry, review post.

    The question list is snapshotted into the record when the applicant starts,
    and every retry reuses that snapshot so attempts always line up.
    """

    def __init__(self, ctx: VerificationContext) -> None:
        self._ctx = ctx

    async def start(self, guild: Any, user: Any) -> tuple[Response, Optional[Any]]:
        """Create the record and DM the intro. Returns the DM channel on success."""
        config = await self._ctx.configs.get(guild.id)
        if not config.verification_message:
            return Response.fail("Couldn't find the verification message."), None
        if not config.verification_ending_message:
            return Response.fail("Couldn't find the verification ending message."), None
        if not config.verification_questions:
            return Response.fail("Couldn't find the questions."), None

        required: list[int] = []
        if await self._ctx.opt_outs.is_opted_out(user.id):
            approvers = await self._ctx.resolver.members(guild, "verification_approvers")
            required = [a.id for a in approvers]

        app = PendingApplication(
            applicant_id=user.id,
            guild_id=guild.id,
            required_approvers=required,
            questions=list(config.verification_questions),
        )
        created = await self._ctx.applications.create(app)
        if not created.success:
            return created, None

        try:
            intro = await user.send(config.verification_message)
        except discord.HTTPException:
            log.info("Couldn't DM %s in guild %s, dropping application", user.id, guild.id)
            await self._ctx.applications.remove(user.id, guild.id)
            return Response.fail("Couldn't message you, please make sure your DMs are open."), None

        log.info("Verification started for %s in guild %s (approvers=%s)", user.id, guild.id, required)
        return Response.ok("Please check your DMs."), intro.channel

    async def interview(self, guild: Any, user: Any, channel: Any) -> Response:
        """Ask every question once and record the attempt."""
        app = await self._ctx.applications.get(user.id, guild.id)
        if app is None:
            return Response.fail("There was an error finding your application.")

        timeout = self._ctx.settings.answer_timeout_seconds
        answers: list[str] = []
        for question in app.questions:
            try:
                prompt = await channel.send(question)
            except discord.HTTPException:
                await self._abandon_interview(app)
                return Response.fail("Couldn't send a question, please verify again and make sure your DMs are still open.")

            try:
                reply = await self._ctx.wait_for_message(user.id, channel.id, timeout)
            except asyncio.TimeoutError:
                log.info("Applicant %s in guild %s didn't answer in time", user.id, guild.id)
                try:
                    await prompt.edit(content=f"No answer was given within {timeout} seconds. Please verify again.")
                except discord.HTTPException:
                    log.warning("Couldn't edit timed out question for %s", user.id)
                await self._abandon_interview(app)
                return Response.fail("The verification timed out.")
            answers.append(reply.clean_content)

        return await self._complete_attempt(guild, user, channel, app, answers)

    async def _complete_attempt(
        self, guild: Any, user: Any, channel: Any, app: PendingApplication, answers: list[str]
    ) -> Response:
        apps = self._ctx.applications
        await apps.set_questions(user.id, guild.id, app.questions)
        if not await apps.set_answers(user.id, guild.id, [*app.answers, *answers]):
            return Response.fail("Your application was closed while you were answering.")
        await apps.increment_attempts(user.id, guild.id)

        config = await self._ctx.configs.get(guild.id)
        ending = config.verification_ending_message or "Thanks for answering."
        try:
            await channel.send(ending, view=attempt_view(guild.id, user.id))
        except discord.HTTPException:
            log.info("Couldn't send the Confirm/Retry choice to %s, dropping application", user.id)
            await self._abandon_interview(app)
            return Response.fail("Couldn't message you, please verify again and make sure your DMs are still open.")
        log.info("Applicant %s in guild %s finished attempt %d", user.id, guild.id, app.attempts + 1)
        return Response.ok("Your answers were recorded, confirm or retry above.")

    async def _abandon_interview(self, app: PendingApplication) -> None:
        await self._ctx.applications.remove(app.applicant_id, app.guild_id)

    async def confirm(self, guild: Any, user: Any) -> Response:
        app = await self._ctx.applications.get(user.id, guild.id)
        if app is None:
            return Response.fail("There was an error finding your application.")
        if app.review_message_id is not None:
            return Response.fail("Your application was already sent.")
        return await self.post_review(guild, user, app)

    async def retry(self, guild: Any, user: Any, channel: Any) -> Response:
        app = await self._ctx.applications.get(user.id, guild.id)
        if app is None:
            return Response.fail("There was an error finding your current application.")
        if app.review_message_id is not None:
            return Response.fail("Your application was already sent.")

        if app.attempts >= MAX_ATTEMPTS:
            posted = await self.post_review(guild, user, app)
            if not posted.success:
                return posted
            return Response.ok("You're out of attempts, your last answers were sent to the staff team.")

        config = await self._ctx.configs.get(guild.id)
        if config.verification_message:
            try:
                await channel.send(config.verification_message)
            except discord.HTTPException:
                return Response.fail("Couldn't message you, please make sure your DMs are open.")
        return await self.interview(guild, user, channel)

    async def restore_choice(self, guild: Any, user: Any, message: Any) -> bool:
        """Put Confirm/Retry back on a message if the application is still waiting for that choice."""
        app = await self._ctx.applications.get(user.id, guild.id)
        if app is None or app.review_message_id is not None or app.attempts == 0:
            return False
        if len(app.answers) != app.attempts * len(app.questions):
            return False
        try:
            await message.edit(view=attempt_view(guild.id, user.id))
        except discord.HTTPException:
            log.warning("Couldn't restore the Confirm/Retry choice for %s", user.id)
            return False
        return True

    async def post_review(self, guild: Any, user: Any, app: PendingApplication) -> Response:
        log_channel = await self._ctx.resolver.text_channel(guild, "verification_log_channel_id")
        if log_channel is None:
            return Response.fail("Couldn't find the verification log channel.")

        try:
            message = await log_channel.send(embed=review_embed(user, app), view=review_view(user.id))
        except discord.HTTPException:
            log.exception("Couldn't post review for %s in guild %s", user.id, guild.id)
            return Response.fail("Couldn't send your application to the staff team, please try again later.")
        await self._ctx.applications.set_review_message_id(user.id, guild.id, message.id)
        log.info("Posted review %s for %s in guild %s", message.id, user.id, guild.id)
        return Response.ok("Your application has been sent to the staff team.")
