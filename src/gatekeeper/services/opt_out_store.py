from __future__ import annotations

import aiosqlite

from ..models import Response
from .base import BaseService


class OptOutStore(BaseService):
    """Users who need every configured approver to sign off on their application."""

    async def _create_tables(self, db: aiosqlite.Connection) -> None:
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS opt_outs (
                user_id INTEGER PRIMARY KEY
            )
            """
        )

    async def add(self, user_id: int) -> Response:
        async with self._connect() as db:
            try:
                await db.execute("INSERT INTO opt_outs (user_id) VALUES (?)", (int(user_id),))
                await db.commit()
            except aiosqlite.IntegrityError:
                return Response.fail("That user is already opted out.")
        return Response.ok("User opted out.")

    async def is_opted_out(self, user_id: int) -> bool:
        async with self._connect() as db:
            async with db.execute("SELECT 1 FROM opt_outs WHERE user_id=?", (int(user_id),)) as cur:
                return await cur.fetchone() is not None
