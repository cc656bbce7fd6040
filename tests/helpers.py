from __future__ import annotations

from typing import Any

from gatekeeper.testing.fakes import reply


def script_answers(world: Any, *answers: str) -> None:
    for answer in answers:
        world.bot.script(reply(world.applicant, world.applicant.dm, answer))


async def posted_application(world: Any, *answers: str) -> Any:
    """Run an applicant through start, one attempt and confirm; return the review post."""
    guild, applicant = world.guild, world.applicant
    script_answers(world, *(answers or ("I like the community", "A friend")))
    started, channel = await world.pipeline.start(guild, applicant)
    assert started.success, started.message
    interviewed = await world.pipeline.interview(guild, applicant, channel)
    assert interviewed.success, interviewed.message
    confirmed = await world.pipeline.confirm(guild, applicant)
    assert confirmed.success, confirmed.message
    return world.log_channel.messages[-1]
