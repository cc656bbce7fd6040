from __future__ import annotations

import asyncio

from gatekeeper.testing.fakes import FakeMember, next_id


def test_resolves_configured_entities(world):
    resolver = world.ctx.resolver

    async def scenario():
        return (
            await resolver.text_channel(world.guild, "verification_log_channel_id"),
            await resolver.category(world.guild, "questioning_category_id"),
            await resolver.role(world.guild, "member_role_id"),
            await resolver.roles(world.guild, "staff_role_ids"),
        )

    channel, category, role, staff_roles = asyncio.run(scenario())
    assert channel is world.log_channel
    assert category is world.category
    assert role is world.member_role
    assert staff_roles == [world.staff_role]


def test_deleted_channel_is_cleared(world):
    del world.guild.channels[world.log_channel.id]

    async def scenario():
        found = await world.ctx.resolver.text_channel(world.guild, "verification_log_channel_id")
        return found, await world.ctx.configs.get(world.guild.id)

    found, config = asyncio.run(scenario())
    assert found is None
    assert config.verification_log_channel_id is None


def test_wrong_channel_kind_is_cleared(world):
    async def scenario():
        await world.ctx.configs.set_field(world.guild.id, "welcome_channel_id", world.category.id)
        found = await world.ctx.resolver.text_channel(world.guild, "welcome_channel_id")
        return found, await world.ctx.configs.get(world.guild.id)

    found, config = asyncio.run(scenario())
    assert found is None
    assert config.welcome_channel_id is None


def test_missing_approvers_are_dropped(world):
    ghost = FakeMember(next_id(), "ghost")

    async def scenario():
        await world.ctx.configs.add_to_list(world.guild.id, "verification_approvers", world.staff.id)
        await world.ctx.configs.add_to_list(world.guild.id, "verification_approvers", ghost.id)
        found = await world.ctx.resolver.members(world.guild, "verification_approvers")
        return found, await world.ctx.configs.get(world.guild.id)

    found, config = asyncio.run(scenario())
    assert found == [world.staff]
    assert config.verification_approvers == [world.staff.id]
