from __future__ import annotations

import asyncio
import logging

import discord
from discord.ext import commands

from .config import Settings
from .database import initialize_database
from .error_handlers import setup_error_handlers
from .services.application_store import ApplicationStore
from .services.config_resolver import ConfigResolver
from .services.config_store import CommunityConfigStore
from .services.lock_sweeper import LockSweeper
from .services.opt_out_store import OptOutStore
from .verification.context import VerificationContext
from .verification.executor import ModerationExecutor
from .verification.pipeline import VerificationPipeline
from .verification.review import StaffReview

log = logging.getLogger("gatekeeper.bot")


class _CommandSyncManager:
    def __init__(self, bot: "GatekeeperBot") -> None:
        self.bot = bot
        self._lock = asyncio.Lock()

    async def sync_startup(self) -> None:
        async with self._lock:
            guild_id = self.bot.settings.sync_guild_id
            if guild_id:
                guild = discord.Object(id=guild_id)
                self.bot.tree.copy_global_to(guild=guild)
                synced = await self.bot.tree.sync(guild=guild)
                log.info("Synced %d command(s) to guild %d", len(synced), guild_id)
            else:
                synced = await self.bot.tree.sync()
                log.info("Synced %d command(s) globally", len(synced))


class GatekeeperBot(commands.Bot):
    def __init__(self, settings: Settings) -> None:
        intents = discord.Intents.default()
        intents.members = True
        # Needed to read interview answers and typed reasons
        intents.message_content = bool(settings.message_content_intent)
        log.info("INTENTS: guilds=%s members=%s message_content=%s", intents.guilds, intents.members, intents.message_content)

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            allowed_mentions=discord.AllowedMentions(everyone=False, roles=False, users=True),
            help_command=None,
        )

        self.settings = settings
        if settings.owner_id:
            self.owner_id = settings.owner_id

        self.config_store = CommunityConfigStore(settings.sqlite_path)
        self.application_store = ApplicationStore(settings.sqlite_path)
        self.opt_out_store = OptOutStore(settings.sqlite_path)
        self.resolver = ConfigResolver(self.config_store)

        self.verification = VerificationContext(
            bot=self,
            settings=settings,
            configs=self.config_store,
            resolver=self.resolver,
            applications=self.application_store,
            opt_outs=self.opt_out_store,
        )
        self.pipeline = VerificationPipeline(self.verification)
        self.executor = ModerationExecutor(self.verification)
        self.review = StaffReview(self.verification, self.executor)

        self.lock_sweeper = LockSweeper(
            self.application_store,
            expiry_seconds=settings.lock_expiry_seconds,
            every_seconds=settings.lock_sweep_seconds,
        )
        self._sync_mgr = _CommandSyncManager(self)

    async def setup_hook(self) -> None:
        await initialize_database(
            self.settings.sqlite_path,
            [self.config_store, self.application_store, self.opt_out_store],
        )
        self.lock_sweeper.start()

        await setup_error_handlers(self)

        loaded: list[str] = []
        failed: list[str] = []

        async def _load_cog(import_path: str, class_name: str) -> None:
            try:
                mod = __import__(import_path, fromlist=[class_name])
                cls = getattr(mod, class_name)
                await self.add_cog(cls(self))
                loaded.append(f"{import_path}.{class_name}")
            except Exception as e:
                log.exception("Failed to load cog: %s.%s", import_path, class_name)
                failed.append(f"{import_path}.{class_name} ({type(e).__name__})")

        await _load_cog("gatekeeper.cogs.verification", "VerificationCog")
        await _load_cog("gatekeeper.cogs.config_commands", "ConfigCommandsCog")
        await _load_cog("gatekeeper.cogs.app_log", "AppLogCog")

        log.info("Startup cog load summary: loaded=%d failed=%d", len(loaded), len(failed))
        for name in failed:
            log.warning("Startup cog failed: %s", name)

        await self._sync_mgr.sync_startup()

    async def close(self) -> None:
        try:
            await self.lock_sweeper.stop()
        finally:
            await super().close()
