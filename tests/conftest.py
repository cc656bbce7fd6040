from __future__ import annotations

import asyncio
from dataclasses import dataclass

import discord
import pytest

from gatekeeper.config import Settings
from gatekeeper.database import initialize_database
from gatekeeper.services.application_store import ApplicationStore
from gatekeeper.services.config_resolver import ConfigResolver
from gatekeeper.services.config_store import CommunityConfigStore
from gatekeeper.services.opt_out_store import OptOutStore
from gatekeeper.testing.fakes import (
    FakeBot,
    FakeCategory,
    FakeGuild,
    FakeMember,
    FakeRole,
    FakeTextChannel,
    next_id,
)
from gatekeeper.verification.context import VerificationContext
from gatekeeper.verification.executor import ModerationExecutor
from gatekeeper.verification.pipeline import VerificationPipeline
from gatekeeper.verification.review import StaffReview

PROTECTOR_ID = 4242
QUESTIONS = ["Why do you want to join?", "How did you find us?"]


class Clock:
    def __init__(self, now: int = 1_700_000_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@dataclass
class World:
    settings: Settings
    clock: Clock
    bot: FakeBot
    ctx: VerificationContext
    pipeline: VerificationPipeline
    executor: ModerationExecutor
    review: StaffReview
    guild: FakeGuild
    log_channel: FakeTextChannel
    questioning_log: FakeTextChannel
    welcome_channel: FakeTextChannel
    history_channel: FakeTextChannel
    category: FakeCategory
    member_role: FakeRole
    unverified_role: FakeRole
    staff_role: FakeRole
    staff: FakeMember
    other_staff: FakeMember
    applicant: FakeMember


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        token="test-token",
        sync_guild_id=0,
        owner_id=0,
        sqlite_path=str(tmp_path / "gatekeeper.sqlite3"),
        log_level="DEBUG",
        protector_bot_id=PROTECTOR_ID,
    )


@pytest.fixture
def configs(settings) -> CommunityConfigStore:
    store = CommunityConfigStore(settings.sqlite_path)
    asyncio.run(initialize_database(settings.sqlite_path, [store]))
    return store


@pytest.fixture
def applications(settings) -> ApplicationStore:
    store = ApplicationStore(settings.sqlite_path)
    asyncio.run(initialize_database(settings.sqlite_path, [store]))
    return store


@pytest.fixture
def opt_outs(settings) -> OptOutStore:
    store = OptOutStore(settings.sqlite_path)
    asyncio.run(initialize_database(settings.sqlite_path, [store]))
    return store


async def _configure(configs: CommunityConfigStore, world: World) -> None:
    gid = world.guild.id
    await configs.set_field(gid, "verification_message", "Welcome! Please answer a few questions.")
    await configs.set_field(gid, "verification_ending_message", "Thanks, confirm or retry below.")
    for question in QUESTIONS:
        await configs.add_to_list(gid, "verification_questions", question)
    await configs.set_field(gid, "verification_log_channel_id", world.log_channel.id)
    await configs.set_field(gid, "verification_history_channel_id", world.history_channel.id)
    await configs.set_field(gid, "questioning_category_id", world.category.id)
    await configs.set_field(gid, "questioning_log_channel_id", world.questioning_log.id)
    await configs.set_field(gid, "welcome_channel_id", world.welcome_channel.id)
    await configs.set_field(gid, "welcome_message", "Say hi to [member]!")
    await configs.set_field(gid, "welcome_enabled", True)
    await configs.set_field(gid, "member_role_id", world.member_role.id)
    await configs.set_field(gid, "unverified_role_id", world.unverified_role.id)
    await configs.add_to_list(gid, "staff_role_ids", world.staff_role.id)
    await configs.add_to_list(gid, "kick_reasons", "Spam account")
    await configs.add_to_list(gid, "ban_reasons", "Raider")


@pytest.fixture
def world(settings, configs, applications, opt_outs) -> World:
    clock = Clock()
    bot = FakeBot()
    resolver = ConfigResolver(configs)
    ctx = VerificationContext(
        bot=bot,
        settings=settings,
        configs=configs,
        resolver=resolver,
        applications=applications,
        opt_outs=opt_outs,
        clock=clock,
    )
    executor = ModerationExecutor(ctx)

    guild = FakeGuild()
    bot.guilds.append(guild)
    member_role = guild.add_role(FakeRole(next_id(), "Member", position=5))
    unverified_role = guild.add_role(FakeRole(next_id(), "Unverified", position=2))
    staff_role = guild.add_role(FakeRole(next_id(), "Staff", position=10))
    moderator = discord.Permissions(kick_members=True, ban_members=True)

    w = World(
        settings=settings,
        clock=clock,
        bot=bot,
        ctx=ctx,
        pipeline=VerificationPipeline(ctx),
        executor=executor,
        review=StaffReview(ctx, executor),
        guild=guild,
        log_channel=guild.add_channel(FakeTextChannel(next_id(), "verification-log")),
        questioning_log=guild.add_channel(FakeTextChannel(next_id(), "questioning-log")),
        welcome_channel=guild.add_channel(FakeTextChannel(next_id(), "welcome")),
        history_channel=guild.add_channel(FakeTextChannel(next_id(), "verification-history")),
        category=guild.add_channel(FakeCategory(next_id(), "Questioning")),
        member_role=member_role,
        unverified_role=unverified_role,
        staff_role=staff_role,
        staff=guild.add_member(FakeMember(next_id(), "alice", roles=[staff_role], permissions=moderator)),
        other_staff=guild.add_member(FakeMember(next_id(), "bob", roles=[staff_role], permissions=moderator)),
        applicant=guild.add_member(FakeMember(next_id(), "newbie", roles=[unverified_role])),
    )
    asyncio.run(_configure(configs, w))
    return w
