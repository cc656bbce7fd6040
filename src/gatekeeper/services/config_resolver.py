from __future__ import annotations

import logging
from typing import Any, Optional

import discord

from .config_store import CommunityConfigStore

log = logging.getLogger("gatekeeper.config_resolver")


class ConfigResolver:
    """Resolves stored channel/role/member ids against a live guild.

    An id that no longer resolves, or resolves to the wrong kind of channel,
    is cleared from the configuration and treated as unset.
    """

    def __init__(self, store: CommunityConfigStore) -> None:
        self._store = store

    async def _scalar_id(self, guild: Any, field: str) -> Optional[int]:
        config = await self._store.get(guild.id)
        return getattr(config, field)

    async def _heal(self, guild: Any, field: str, stale_id: int) -> None:
        log.warning("Clearing %s=%s for guild %s: no longer resolvable", field, stale_id, guild.id)
        await self._store.unset_field(guild.id, field)

    async def _channel(self, guild: Any, field: str, kind: discord.ChannelType) -> Optional[Any]:
        channel_id = await self._scalar_id(guild, field)
        if channel_id is None:
            return None
        channel = guild.get_channel(channel_id)
        if channel is None or channel.type != kind:
            await self._heal(guild, field, channel_id)
            return None
        return channel

    async def text_channel(self, guild: Any, field: str) -> Optional[Any]:
        return await self._channel(guild, field, discord.ChannelType.text)

    async def category(self, guild: Any, field: str) -> Optional[Any]:
        return await self._channel(guild, field, discord.ChannelType.category)

    async def role(self, guild: Any, field: str) -> Optional[Any]:
        role_id = await self._scalar_id(guild, field)
        if role_id is None:
            return None
        role = guild.get_role(role_id)
        if role is None:
            await self._heal(guild, field, role_id)
            return None
        return role

    async def _list(self, guild: Any, field: str, lookup: str) -> list[Any]:
        config = await self._store.get(guild.id)
        found: list[Any] = []
        for entity_id in getattr(config, field):
            entity = getattr(guild, lookup)(entity_id)
            if entity is None:
                log.warning("Removing %s from %s for guild %s: no longer resolvable", entity_id, field, guild.id)
                await self._store.remove_from_list(guild.id, field, value=entity_id)
                continue
            found.append(entity)
        return found

    async def roles(self, guild: Any, field: str) -> list[Any]:
        return await self._list(guild, field, "get_role")

    async def members(self, guild: Any, field: str) -> list[Any]:
        return await self._list(guild, field, "get_member")
