from __future__ import annotations

import logging
from typing import Any, Iterable

from .errors import PermissionDeniedError

log = logging.getLogger("gatekeeper.permissions")

# action -> discord.Permissions attribute
CAPABILITIES = {
    "kick": "kick_members",
    "ban": "ban_members",
}


def is_staff(member: Any, staff_role_ids: Iterable[int]) -> bool:
    """A member is staff if they hold any configured staff role."""
    wanted = set(staff_role_ids)
    if not wanted:
        return False
    return any(role.id in wanted for role in getattr(member, "roles", []))


def has_capability(member: Any, action: str) -> bool:
    perm = CAPABILITIES[action]
    return bool(getattr(member.guild_permissions, perm, False))


def is_moderatable(guild: Any, target: Any) -> bool:
    """True when the bot outranks the target and the target is not the owner."""
    if target.id == guild.owner_id:
        return False
    return target.top_role.position < guild.me.top_role.position


def require_staff(member: Any, staff_role_ids: Iterable[int]) -> None:
    if not is_staff(member, staff_role_ids):
        raise PermissionDeniedError("Only staff members can interact with this.")


def require_action(guild: Any, actor: Any, target: Any, action: str) -> None:
    """Checks run before any kick/ban mutation, in order: actor, bot, target."""
    if not has_capability(actor, action):
        raise PermissionDeniedError(f"You don't have permission to {action} members.")
    if not has_capability(guild.me, action):
        raise PermissionDeniedError(f"I don't have permission to {action} members.")
    if target is not None and not is_moderatable(guild, target):
        log.info("Refusing to %s %s in guild %s: not moderatable", action, target.id, guild.id)
        raise PermissionDeniedError(f"I can't {action} that member, their role is equal to or above mine.")
