from __future__ import annotations

import logging
from typing import Any

import discord

from ..constants import STATE_LEFT
from ..ui.embeds import is_terminal, with_state
from .context import VerificationContext
from .executor import ModerationExecutor
from .review import StaffReview

log = logging.getLogger("gatekeeper.abandonment")


async def handle_member_left(
    ctx: VerificationContext, review: StaffReview, executor: ModerationExecutor, guild: Any, member: Any
) -> bool:
    """Clean up after an applicant who left mid-verification. Returns True if a record was dropped."""
    app = await ctx.applications.get(member.id, guild.id)
    if app is None:
        return False

    await executor.close_questioning(guild, app)

    review_message = await review.fetch_review_message(guild, app)
    if review_message is not None and review_message.embeds and not is_terminal(review_message.embeds[0]):
        try:
            await review_message.edit(embed=with_state(review_message.embeds[0], STATE_LEFT), view=None)
        except discord.HTTPException:
            log.warning("Couldn't mark review post %s as left", review_message.id)

    await ctx.applications.remove(member.id, guild.id)
    log.info("Applicant %s left guild %s mid-verification", member.id, guild.id)
    return True
