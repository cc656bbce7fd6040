from __future__ import annotations

import json
from typing import Any, Callable, Optional

import aiosqlite

from ..errors import ValidationError
from ..models import CommunityConfig, Response
from .base import BaseService

# field -> human readable label used in responses
SCALAR_FIELDS: dict[str, str] = {
    "verification_message": "verification message",
    "verification_ending_message": "verification ending message",
    "verification_log_channel_id": "verification log channel",
    "verification_history_channel_id": "verification history channel",
    "questioning_category_id": "questioning category",
    "questioning_log_channel_id": "questioning log channel",
    "welcome_channel_id": "welcome channel",
    "welcome_message": "welcome message",
    "welcome_enabled": "welcome toggle",
    "member_role_id": "member role",
    "unverified_role_id": "unverified role",
    "app_log_enabled": "app log toggle",
    "app_log_channel_id": "app log channel",
}

LIST_FIELDS: dict[str, str] = {
    "verification_questions": "verification question",
    "verification_approvers": "verification approver",
    "staff_role_ids": "staff role",
    "kick_reasons": "kick reason",
    "ban_reasons": "ban reason",
}

_BOOL_FIELDS = frozenset({"welcome_enabled", "app_log_enabled"})
_INT_FIELDS = frozenset(
    {
        "verification_log_channel_id",
        "verification_history_channel_id",
        "questioning_category_id",
        "questioning_log_channel_id",
        "welcome_channel_id",
        "member_role_id",
        "unverified_role_id",
        "app_log_channel_id",
    }
)

_COLUMNS = ("guild_id", *SCALAR_FIELDS, *LIST_FIELDS)


def add_item(items: list[Any], value: Any) -> list[Any]:
    if value in items:
        raise ValidationError("That value is already in the list.")
    return [*items, value]


def remove_item(items: list[Any], value: Any) -> list[Any]:
    if value not in items:
        raise ValidationError("That value isn't in the list.")
    out = list(items)
    out.remove(value)
    return out


def remove_index(items: list[Any], index: int) -> list[Any]:
    if not 0 <= index < len(items):
        raise ValidationError(f"Index {index + 1} is out of range, the list has {len(items)} entries.")
    return items[:index] + items[index + 1:]


def reposition(items: list[Any], from_index: int, to_index: int) -> list[Any]:
    """Move one element, shifting the others. Length and contents are preserved."""
    if from_index == to_index:
        raise ValidationError("The old and new positions are the same.")
    for index in (from_index, to_index):
        if not 0 <= index < len(items):
            raise ValidationError(f"Index {index + 1} is out of range, the list has {len(items)} entries.")
    out = list(items)
    out.insert(to_index, out.pop(from_index))
    return out


class CommunityConfigStore(BaseService):
    """Per-guild settings. Rows are created on first read and removed on reset.

    Scalar writes are single conditional UPDATEs; list writes run inside one
    immediate transaction.
    """

    async def _create_tables(self, db: aiosqlite.Connection) -> None:
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS community_config (
                guild_id INTEGER PRIMARY KEY,
                verification_message TEXT NULL,
                verification_ending_message TEXT NULL,
                verification_log_channel_id INTEGER NULL,
                verification_history_channel_id INTEGER NULL,
                questioning_category_id INTEGER NULL,
                questioning_log_channel_id INTEGER NULL,
                welcome_channel_id INTEGER NULL,
                welcome_message TEXT NULL,
                welcome_enabled INTEGER NOT NULL DEFAULT 0,
                member_role_id INTEGER NULL,
                unverified_role_id INTEGER NULL,
                app_log_enabled INTEGER NOT NULL DEFAULT 0,
                app_log_channel_id INTEGER NULL,
                verification_questions TEXT NOT NULL DEFAULT '[]',
                verification_approvers TEXT NOT NULL DEFAULT '[]',
                staff_role_ids TEXT NOT NULL DEFAULT '[]',
                kick_reasons TEXT NOT NULL DEFAULT '[]',
                ban_reasons TEXT NOT NULL DEFAULT '[]'
            )
            """
        )

    def _from_row(self, row: aiosqlite.Row) -> CommunityConfig:
        values: dict[str, Any] = {"guild_id": int(row["guild_id"])}
        for name in SCALAR_FIELDS:
            raw = row[name]
            if name in _BOOL_FIELDS:
                values[name] = bool(raw)
            elif name in _INT_FIELDS:
                values[name] = int(raw) if raw is not None else None
            else:
                values[name] = raw
        for name in LIST_FIELDS:
            values[name] = json.loads(row[name] or "[]")
        return CommunityConfig(**values)

    async def get(self, guild_id: int) -> CommunityConfig:
        async with self._connect() as db:
            await db.execute("INSERT OR IGNORE INTO community_config (guild_id) VALUES (?)", (int(guild_id),))
            await db.commit()
            async with db.execute(
                f"SELECT {', '.join(_COLUMNS)} FROM community_config WHERE guild_id=?",
                (int(guild_id),),
            ) as cur:
                row = await cur.fetchone()
        return self._from_row(row)

    async def reset(self, guild_id: int) -> Response:
        async with self._connect() as db:
            cur = await db.execute("DELETE FROM community_config WHERE guild_id=?", (int(guild_id),))
            await db.commit()
            changed = cur.rowcount
        if not changed:
            return Response.fail("There was no configuration to reset.")
        self._logger.info("Configuration reset for guild %s", guild_id)
        return Response.ok("All configuration settings for this server have been reset.")

    # ----- scalar fields -----

    @staticmethod
    def _scalar(field: str) -> str:
        if field not in SCALAR_FIELDS:
            raise ValidationError(f"Unknown setting: {field}")
        return field

    @staticmethod
    def _encode(field: str, value: Any) -> Any:
        if field in _BOOL_FIELDS:
            if not isinstance(value, bool):
                raise ValidationError(f"The {SCALAR_FIELDS[field]} must be enabled or disabled.")
            return int(value)
        if field in _INT_FIELDS:
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(f"The {SCALAR_FIELDS[field]} must be an ID.")
            return value
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"The {SCALAR_FIELDS[field]} can't be empty.")
        return value

    async def set_field(self, guild_id: int, field: str, value: Any) -> Response:
        column = self._scalar(field)
        stored = self._encode(field, value)
        label = SCALAR_FIELDS[field]
        await self.get(guild_id)
        async with self._connect() as db:
            cur = await db.execute(
                f"UPDATE community_config SET {column}=? WHERE guild_id=? AND {column} IS NOT ?",
                (stored, int(guild_id), stored),
            )
            await db.commit()
            changed = cur.rowcount
        if not changed:
            return Response.fail(f"The {label} is already set to that.")
        return Response.ok(f"The {label} has been set.")

    async def unset_field(self, guild_id: int, field: str) -> Response:
        column = self._scalar(field)
        if field in _BOOL_FIELDS:
            raise ValidationError(f"The {SCALAR_FIELDS[field]} can only be enabled or disabled.")
        label = SCALAR_FIELDS[field]
        async with self._connect() as db:
            cur = await db.execute(
                f"UPDATE community_config SET {column}=NULL WHERE guild_id=? AND {column} IS NOT NULL",
                (int(guild_id),),
            )
            await db.commit()
            changed = cur.rowcount
        if not changed:
            return Response.fail(f"The {label} isn't set.")
        return Response.ok(f"The {label} has been removed.")

    # ----- list fields -----

    @staticmethod
    def _list(field: str) -> str:
        if field not in LIST_FIELDS:
            raise ValidationError(f"Unknown list setting: {field}")
        return field

    async def _mutate_list(
        self,
        guild_id: int,
        field: str,
        mutate: Callable[[list[Any]], list[Any]],
        success: str,
    ) -> Response:
        column = self._list(field)
        await self.get(guild_id)
        async with self._connect() as db:
            await db.execute("BEGIN IMMEDIATE")
            async with db.execute(
                f"SELECT {column} FROM community_config WHERE guild_id=?", (int(guild_id),)
            ) as cur:
                row = await cur.fetchone()
            items = json.loads(row[column] or "[]") if row else []
            try:
                updated = mutate(list(items))
            except ValidationError as e:
                await db.rollback()
                return Response.fail(str(e))
            await db.execute(
                f"UPDATE community_config SET {column}=? WHERE guild_id=?",
                (json.dumps(updated, ensure_ascii=False), int(guild_id)),
            )
            await db.commit()
        return Response.ok(success)

    async def add_to_list(self, guild_id: int, field: str, value: Any) -> Response:
        label = LIST_FIELDS[self._list(field)]
        return await self._mutate_list(
            guild_id, field, lambda items: add_item(items, value), f"The {label} has been added."
        )

    async def remove_from_list(
        self,
        guild_id: int,
        field: str,
        *,
        value: Any = None,
        index: Optional[int] = None,
    ) -> Response:
        label = LIST_FIELDS[self._list(field)]
        if (value is None) == (index is None):
            raise ValidationError("Provide either a value or an index to remove.")
        if index is not None:
            mutate = lambda items: remove_index(items, index)  # noqa: E731
        else:
            mutate = lambda items: remove_item(items, value)  # noqa: E731
        return await self._mutate_list(guild_id, field, mutate, f"The {label} has been removed.")

    async def clear_list(self, guild_id: int, field: str) -> Response:
        label = LIST_FIELDS[self._list(field)]

        def _clear(items: list[Any]) -> list[Any]:
            if not items:
                raise ValidationError(f"There are no {label}s to remove.")
            return []

        return await self._mutate_list(guild_id, field, _clear, f"All {label}s have been removed.")

    async def move_in_list(self, guild_id: int, field: str, from_index: int, to_index: int) -> Response:
        label = LIST_FIELDS[self._list(field)]
        return await self._mutate_list(
            guild_id,
            field,
            lambda items: reposition(items, from_index, to_index),
            f"The {label} has been moved from position {from_index + 1} to {to_index + 1}.",
        )
