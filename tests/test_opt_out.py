from __future__ import annotations

import asyncio

import discord

from gatekeeper.testing.fakes import FakeMember, FakeMessage, next_id
from gatekeeper.verification.opt_out import handle_history_message, protector_username, scan_history

from .conftest import PROTECTOR_ID

protector = FakeMember(PROTECTOR_ID, "protector", bot=True)


def _post(channel, title: str, author=protector) -> FakeMessage:
    return FakeMessage(None, author, channel, embed=discord.Embed(title=title))


def test_protector_username_parsing(world):
    marker = world.settings.protector_message
    channel = world.history_channel
    assert protector_username(_post(channel, f"newbie#0 {marker}"), PROTECTOR_ID, marker) == "newbie"
    assert protector_username(_post(channel, f"newbie {marker}"), PROTECTOR_ID, marker) == "newbie"
    assert protector_username(_post(channel, "newbie joined"), PROTECTOR_ID, marker) is None
    stranger = FakeMember(next_id(), "stranger", bot=True)
    assert protector_username(_post(channel, f"newbie {marker}", stranger), PROTECTOR_ID, marker) is None


def test_live_history_post_opts_member_out(world):
    message = _post(world.history_channel, f"{world.applicant.name} {world.settings.protector_message}")

    async def scenario():
        added = await handle_history_message(world.ctx, message)
        return added, await world.ctx.opt_outs.is_opted_out(world.applicant.id)

    added, flagged = asyncio.run(scenario())
    assert added is True
    assert flagged is True


def test_posts_elsewhere_are_ignored(world):
    message = _post(world.welcome_channel, f"{world.applicant.name} {world.settings.protector_message}")
    assert asyncio.run(handle_history_message(world.ctx, message)) is False


def test_startup_scan(world):
    marker = world.settings.protector_message
    world.history_channel.messages.extend(
        [
            _post(world.history_channel, f"{world.applicant.name} {marker}"),
            _post(world.history_channel, f"{world.staff.name} {marker}"),
            _post(world.history_channel, f"someone-who-left {marker}"),
            _post(world.history_channel, "unrelated"),
        ]
    )

    async def scenario():
        added = await scan_history(world.ctx, world.guild)
        rescanned = await scan_history(world.ctx, world.guild)
        return added, rescanned, await world.ctx.opt_outs.is_opted_out(world.staff.id)

    added, rescanned, staff_flagged = asyncio.run(scenario())
    assert added == 2
    assert rescanned == 0
    assert staff_flagged is True


def test_unreadable_history_channel_is_skipped(world):
    world.history_channel.perms = discord.Permissions.none()
    world.history_channel.messages.append(
        _post(world.history_channel, f"{world.applicant.name} {world.settings.protector_message}")
    )
    assert asyncio.run(scan_history(world.ctx, world.guild)) == 0
