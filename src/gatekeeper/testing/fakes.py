"""In-memory stand-ins for the discord.py objects the verification workflow touches."""

from __future__ import annotations

import asyncio
import itertools
from types import SimpleNamespace
from typing import Any, AsyncIterator, Optional

import discord

_ids = itertools.count(900_000_000_000_000_001)


def next_id() -> int:
    return next(_ids)


def http_error(status: int = 403, message: str = "Missing Access") -> discord.HTTPException:
    response = SimpleNamespace(status=status, reason=message)
    if status == 403:
        return discord.Forbidden(response, message)  # type: ignore[arg-type]
    if status == 404:
        return discord.NotFound(response, message)  # type: ignore[arg-type]
    return discord.HTTPException(response, message)  # type: ignore[arg-type]


class FakeRole:
    def __init__(self, id: int, name: str = "Role", position: int = 1) -> None:
        self.id = id
        self.name = name
        self.position = position
        self.mention = f"<@&{id}>"

    def __repr__(self) -> str:
        return f"<FakeRole id={self.id} name={self.name}>"


class FakeMessage:
    def __init__(
        self,
        content: Optional[str] = None,
        author: Any = None,
        channel: Any = None,
        *,
        embed: Optional[discord.Embed] = None,
        view: Optional[discord.ui.View] = None,
        file: Optional[discord.File] = None,
        id: Optional[int] = None,
    ) -> None:
        self.id = id or next_id()
        self.content = content or ""
        self.clean_content = self.content
        self.author = author
        self.channel = channel
        self.guild = getattr(channel, "guild", None)
        self.embeds: list[discord.Embed] = [embed] if embed is not None else []
        self.view = view
        self.file = file
        self.attachments: list[Any] = []
        self.created_at = discord.utils.utcnow()
        self.deleted = False
        self.fail_edits = False
        self.edits: list[dict[str, Any]] = []
        self.jump_url = f"https://discord.com/channels/0/{getattr(channel, 'id', 0)}/{self.id}"

    async def edit(self, **kwargs: Any) -> "FakeMessage":
        if self.fail_edits:
            raise http_error(500, "Internal Server Error")
        self.edits.append(kwargs)
        if "content" in kwargs:
            self.content = kwargs["content"] or ""
            self.clean_content = self.content
        if "embed" in kwargs:
            self.embeds = [kwargs["embed"]] if kwargs["embed"] is not None else []
        if "view" in kwargs:
            self.view = kwargs["view"]
        return self

    async def delete(self) -> None:
        self.deleted = True
        if self.channel is not None and self in self.channel.messages:
            self.channel.messages.remove(self)


class FakeTextChannel:
    def __init__(
        self,
        id: int,
        name: str = "channel",
        guild: Any = None,
        type: discord.ChannelType = discord.ChannelType.text,
    ) -> None:
        self.id = id
        self.name = name
        self.guild = guild
        self.type = type
        self.mention = f"<#{id}>"
        self.messages: list[FakeMessage] = []
        self.overwrites: dict[int, discord.PermissionOverwrite] = {}
        self.permission_log: list[tuple[int, Optional[discord.PermissionOverwrite]]] = []
        self.deleted = False
        self.fail_sends = False
        self.fail_views = False
        self.fail_permissions = False
        self.perms = discord.Permissions.all()

    async def send(self, content: Optional[str] = None, **kwargs: Any) -> FakeMessage:
        if self.fail_sends or (self.fail_views and kwargs.get("view") is not None):
            raise http_error(403, "Cannot send messages to this user")
        me = getattr(self.guild, "me", None)
        message = FakeMessage(
            content, me, self, embed=kwargs.get("embed"), view=kwargs.get("view"), file=kwargs.get("file")
        )
        self.messages.append(message)
        return message

    async def fetch_message(self, message_id: int) -> FakeMessage:
        for message in self.messages:
            if message.id == message_id:
                return message
        raise http_error(404, "Unknown Message")

    async def history(self, limit: Optional[int] = None, oldest_first: bool = False) -> AsyncIterator[FakeMessage]:
        ordered = list(self.messages) if oldest_first else list(reversed(self.messages))
        for message in ordered[:limit]:
            yield message

    def overwrites_for(self, target: Any) -> discord.PermissionOverwrite:
        current = self.overwrites.get(target.id)
        if current is None:
            return discord.PermissionOverwrite()
        return discord.PermissionOverwrite.from_pair(*current.pair())

    async def set_permissions(
        self, target: Any, *, overwrite: Optional[discord.PermissionOverwrite] = None, reason: Optional[str] = None
    ) -> None:
        if self.fail_permissions:
            raise http_error(403, "Missing Permissions")
        self.permission_log.append((target.id, overwrite))
        if overwrite is None:
            self.overwrites.pop(target.id, None)
        else:
            self.overwrites[target.id] = overwrite

    def permissions_for(self, member: Any) -> discord.Permissions:
        return self.perms

    async def delete(self, reason: Optional[str] = None) -> None:
        self.deleted = True
        if self.guild is not None:
            self.guild.channels.pop(self.id, None)


class FakeCategory:
    def __init__(self, id: int, name: str = "category", guild: Any = None) -> None:
        self.id = id
        self.name = name
        self.guild = guild
        self.type = discord.ChannelType.category
        self.mention = f"<#{id}>"
        self.created: list[FakeTextChannel] = []

    async def create_text_channel(self, name: str, **kwargs: Any) -> FakeTextChannel:
        channel = FakeTextChannel(next_id(), name, self.guild)
        for target, overwrite in (kwargs.get("overwrites") or {}).items():
            channel.overwrites[target.id] = overwrite
        self.guild.add_channel(channel)
        self.created.append(channel)
        return channel


class FakeMember:
    def __init__(
        self,
        id: int,
        name: str = "member",
        *,
        roles: Optional[list[FakeRole]] = None,
        permissions: Optional[discord.Permissions] = None,
        bot: bool = False,
        guild: Any = None,
    ) -> None:
        self.id = id
        self.name = name
        self.display_name = name
        self.mention = f"<@{id}>"
        self.bot = bot
        self.guild = guild
        self.roles: list[FakeRole] = list(roles or [])
        self.guild_permissions = permissions or discord.Permissions.none()
        self.dm = FakeTextChannel(next_id(), f"dm-{name}", None, type=discord.ChannelType.private)
        self.kicked: Optional[str] = None
        self.banned: Optional[str] = None

    @property
    def top_role(self) -> FakeRole:
        if not self.roles:
            return FakeRole(0, "@everyone", 0)
        return max(self.roles, key=lambda r: r.position)

    async def send(self, content: Optional[str] = None, **kwargs: Any) -> FakeMessage:
        if self.dm.fail_sends or (self.dm.fail_views and kwargs.get("view") is not None):
            raise http_error(403, "Cannot send messages to this user")
        message = FakeMessage(content, None, self.dm, embed=kwargs.get("embed"), view=kwargs.get("view"))
        self.dm.messages.append(message)
        return message

    async def add_roles(self, *roles: FakeRole, reason: Optional[str] = None) -> None:
        for role in roles:
            if role not in self.roles:
                self.roles.append(role)

    async def remove_roles(self, *roles: FakeRole, reason: Optional[str] = None) -> None:
        self.roles = [r for r in self.roles if r not in roles]

    async def kick(self, reason: Optional[str] = None) -> None:
        self.kicked = reason or ""

    async def ban(self, reason: Optional[str] = None) -> None:
        self.banned = reason or ""

    def __repr__(self) -> str:
        return f"<FakeMember id={self.id} name={self.name}>"


class FakeGuild:
    def __init__(self, id: int = 1000, name: str = "Test Guild", owner_id: int = 1) -> None:
        self.id = id
        self.name = name
        self.owner_id = owner_id
        self.channels: dict[int, Any] = {}
        self.roles: dict[int, FakeRole] = {}
        self._members: dict[int, FakeMember] = {}
        bot_role = self.add_role(FakeRole(next_id(), "Gatekeeper", position=50))
        self.me = self.add_member(
            FakeMember(next_id(), "gatekeeper", roles=[bot_role], permissions=discord.Permissions.all(), bot=True)
        )

    @property
    def members(self) -> list[FakeMember]:
        return list(self._members.values())

    def add_channel(self, channel: Any) -> Any:
        channel.guild = self
        self.channels[channel.id] = channel
        return channel

    def add_role(self, role: FakeRole) -> FakeRole:
        self.roles[role.id] = role
        return role

    def add_member(self, member: FakeMember) -> FakeMember:
        member.guild = self
        self._members[member.id] = member
        return member

    def remove_member(self, member_id: int) -> None:
        self._members.pop(member_id, None)

    def get_channel(self, channel_id: int) -> Any:
        return self.channels.get(channel_id)

    def get_role(self, role_id: int) -> Optional[FakeRole]:
        return self.roles.get(role_id)

    def get_member(self, member_id: int) -> Optional[FakeMember]:
        return self._members.get(member_id)


class FakeBot:
    """Replays scripted messages to ``wait_for``; an exception in the script is raised instead."""

    def __init__(self) -> None:
        self.guilds: list[FakeGuild] = []
        self._script: list[Any] = []
        self.waits: list[dict[str, Any]] = []

    def script(self, *items: Any) -> None:
        self._script.extend(items)

    def get_guild(self, guild_id: int) -> Optional[FakeGuild]:
        return next((g for g in self.guilds if g.id == guild_id), None)

    async def wait_for(self, event: str, *, check: Any = None, timeout: Optional[float] = None) -> Any:
        self.waits.append({"event": event, "timeout": timeout})
        if not self._script:
            raise asyncio.TimeoutError()
        item = self._script.pop(0)
        if isinstance(item, BaseException):
            raise item
        if check is not None and not check(item):
            raise AssertionError(f"scripted {event} {item!r} did not pass the wait_for check")
        return item


def reply(author: Any, channel: Any, content: str) -> FakeMessage:
    """A message as if ``author`` typed it in ``channel``."""
    return FakeMessage(content, author, channel)
