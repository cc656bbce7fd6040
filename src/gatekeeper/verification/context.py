from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from ..config import Settings
from ..services.application_store import ApplicationStore
from ..services.config_resolver import ConfigResolver
from ..services.config_store import CommunityConfigStore
from ..services.lock_sweeper import now_ms
from ..services.opt_out_store import OptOutStore


@dataclass(frozen=True)
class VerificationContext:
    """Everything a verification handler needs, built once at startup."""

    bot: Any
    settings: Settings
    configs: CommunityConfigStore
    resolver: ConfigResolver
    applications: ApplicationStore
    opt_outs: OptOutStore
    clock: Callable[[], int] = field(default=now_ms)

    async def wait_for_message(self, author_id: int, channel_id: int, timeout: float) -> Any:
        """Wait for one message by an author in a channel; raises asyncio.TimeoutError."""

        def check(message: Any) -> bool:
            return message.author.id == author_id and message.channel.id == channel_id

        return await self.bot.wait_for("message", check=check, timeout=timeout)
