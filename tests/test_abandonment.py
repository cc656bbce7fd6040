from __future__ import annotations

import asyncio

from gatekeeper.ui.embeds import states_of
from gatekeeper.verification.abandonment import handle_member_left

from .helpers import posted_application


def _left(world):
    return handle_member_left(world.ctx, world.review, world.executor, world.guild, world.applicant)


def test_leaving_marks_post_and_drops_record(world):
    async def scenario():
        post = await posted_application(world)
        await world.review.question(world.guild, world.staff, post)
        world.guild.remove_member(world.applicant.id)
        dropped = await _left(world)
        return post, dropped, await world.ctx.applications.get(world.applicant.id, world.guild.id)

    post, dropped, app = asyncio.run(scenario())
    assert dropped is True
    assert app is None
    assert states_of(post.embeds[0]) == ["Questioned", "Left"]
    assert world.category.created[0].deleted


def test_leaving_before_posting(world):
    async def scenario():
        await world.pipeline.start(world.guild, world.applicant)
        return await _left(world), await world.ctx.applications.get(world.applicant.id, world.guild.id)

    dropped, app = asyncio.run(scenario())
    assert dropped is True
    assert app is None
    assert world.log_channel.messages == []


def test_leaving_without_an_application(world):
    assert asyncio.run(_left(world)) is False
