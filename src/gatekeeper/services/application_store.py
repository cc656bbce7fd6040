from __future__ import annotations

import json
from typing import Optional

import aiosqlite

from ..models import PendingApplication, Response
from .base import BaseService

_SELECT = (
    "SELECT applicant_id, guild_id, required_approvers, questions, answers, attempts, "
    "review_message_id, questioning_channel_id, lock_timestamp, lock_holder_id FROM pending_applications"
)


class ApplicationStore(BaseService):
    """In-progress verification records, one per (applicant_id, guild_id).

    Every mutation is a single statement (or one immediate transaction for
    list edits) so it is atomic at the row level.
    """

    async def _create_tables(self, db: aiosqlite.Connection) -> None:
        await db.execute(
            """
            CREATE TABLE IF NOT EXISTS pending_applications (
                applicant_id INTEGER NOT NULL,
                guild_id INTEGER NOT NULL,
                required_approvers TEXT NOT NULL DEFAULT '[]',
                questions TEXT NOT NULL DEFAULT '[]',
                answers TEXT NOT NULL DEFAULT '[]',
                attempts INTEGER NOT NULL DEFAULT 0,
                review_message_id INTEGER NULL,
                questioning_channel_id INTEGER NULL,
                lock_timestamp INTEGER NULL,
                lock_holder_id INTEGER NULL,
                PRIMARY KEY (applicant_id, guild_id)
            )
            """
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_pending_review_msg ON pending_applications(review_message_id)"
        )
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_pending_questioning ON pending_applications(questioning_channel_id)"
        )

    def _from_row(self, row: aiosqlite.Row) -> PendingApplication:
        return PendingApplication(
            applicant_id=int(row["applicant_id"]),
            guild_id=int(row["guild_id"]),
            required_approvers=[int(x) for x in json.loads(row["required_approvers"] or "[]")],
            questions=list(json.loads(row["questions"] or "[]")),
            answers=list(json.loads(row["answers"] or "[]")),
            attempts=int(row["attempts"]),
            review_message_id=int(row["review_message_id"]) if row["review_message_id"] is not None else None,
            questioning_channel_id=(
                int(row["questioning_channel_id"]) if row["questioning_channel_id"] is not None else None
            ),
            lock_timestamp=int(row["lock_timestamp"]) if row["lock_timestamp"] is not None else None,
            lock_holder_id=int(row["lock_holder_id"]) if row["lock_holder_id"] is not None else None,
        )

    async def _fetch_one(self, where: str, params: tuple) -> Optional[PendingApplication]:
        async with self._connect() as db:
            async with db.execute(f"{_SELECT} WHERE {where}", params) as cur:
                row = await cur.fetchone()
        return self._from_row(row) if row else None

    async def _update(self, applicant_id: int, guild_id: int, assignments: str, params: tuple) -> bool:
        async with self._connect() as db:
            cur = await db.execute(
                f"UPDATE pending_applications SET {assignments} WHERE applicant_id=? AND guild_id=?",
                (*params, int(applicant_id), int(guild_id)),
            )
            await db.commit()
            return cur.rowcount > 0

    # ----- lookups -----

    async def get(self, applicant_id: int, guild_id: int) -> Optional[PendingApplication]:
        return await self._fetch_one("applicant_id=? AND guild_id=?", (int(applicant_id), int(guild_id)))

    async def get_by_review_message(self, message_id: int) -> Optional[PendingApplication]:
        return await self._fetch_one("review_message_id=?", (int(message_id),))

    async def get_by_questioning_channel(self, channel_id: int) -> Optional[PendingApplication]:
        return await self._fetch_one("questioning_channel_id=?", (int(channel_id),))

    # ----- create / remove -----

    async def create(self, app: PendingApplication) -> Response:
        async with self._connect() as db:
            try:
                await db.execute(
                    """
                    INSERT INTO pending_applications (
                        applicant_id, guild_id, required_approvers, questions, answers, attempts
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        int(app.applicant_id),
                        int(app.guild_id),
                        json.dumps([int(x) for x in app.required_approvers]),
                        json.dumps(app.questions, ensure_ascii=False),
                        json.dumps(app.answers, ensure_ascii=False),
                        int(app.attempts),
                    ),
                )
                await db.commit()
            except aiosqlite.IntegrityError:
                return Response.fail("You already started the verification process.")
        return Response.ok("Application created.")

    async def remove(self, applicant_id: int, guild_id: int) -> Response:
        async with self._connect() as db:
            cur = await db.execute(
                "DELETE FROM pending_applications WHERE applicant_id=? AND guild_id=?",
                (int(applicant_id), int(guild_id)),
            )
            await db.commit()
            removed = cur.rowcount > 0
        if not removed:
            return Response.fail("Couldn't find the pending application.")
        return Response.ok("Pending application removed.")

    # ----- field setters -----

    async def set_questions(self, applicant_id: int, guild_id: int, questions: list[str]) -> bool:
        return await self._update(
            applicant_id, guild_id, "questions=?", (json.dumps(list(questions), ensure_ascii=False),)
        )

    async def set_answers(self, applicant_id: int, guild_id: int, answers: list[str]) -> bool:
        return await self._update(
            applicant_id, guild_id, "answers=?", (json.dumps(list(answers), ensure_ascii=False),)
        )

    async def set_review_message_id(self, applicant_id: int, guild_id: int, message_id: int) -> bool:
        return await self._update(applicant_id, guild_id, "review_message_id=?", (int(message_id),))

    async def set_questioning_channel_id(self, applicant_id: int, guild_id: int, channel_id: int) -> bool:
        return await self._update(applicant_id, guild_id, "questioning_channel_id=?", (int(channel_id),))

    async def increment_attempts(self, applicant_id: int, guild_id: int) -> bool:
        return await self._update(applicant_id, guild_id, "attempts=attempts+1", ())

    async def remove_approver(self, applicant_id: int, guild_id: int, approver_id: int) -> Optional[list[int]]:
        """Remove one approver. Returns the remaining approvers, or None if they weren't required."""
        async with self._connect() as db:
            await db.execute("BEGIN IMMEDIATE")
            async with db.execute(
                "SELECT required_approvers FROM pending_applications WHERE applicant_id=? AND guild_id=?",
                (int(applicant_id), int(guild_id)),
            ) as cur:
                row = await cur.fetchone()
            approvers = [int(x) for x in json.loads(row["required_approvers"] or "[]")] if row else []
            if int(approver_id) not in approvers:
                await db.rollback()
                return None
            approvers.remove(int(approver_id))
            await db.execute(
                "UPDATE pending_applications SET required_approvers=? WHERE applicant_id=? AND guild_id=?",
                (json.dumps(approvers), int(applicant_id), int(guild_id)),
            )
            await db.commit()
        return approvers

    # ----- lock -----

    async def acquire_lock(self, applicant_id: int, guild_id: int, holder_id: int, now_ms: int) -> bool:
        """Set both lock fields only if the record is currently unlocked."""
        async with self._connect() as db:
            cur = await db.execute(
                """
                UPDATE pending_applications SET lock_timestamp=?, lock_holder_id=?
                WHERE applicant_id=? AND guild_id=? AND lock_timestamp IS NULL
                """,
                (int(now_ms), int(holder_id), int(applicant_id), int(guild_id)),
            )
            await db.commit()
            acquired = cur.rowcount > 0
        if acquired:
            self._logger.info("Lock on %s/%s acquired by %s", guild_id, applicant_id, holder_id)
        return acquired

    async def set_lock_holder(self, applicant_id: int, guild_id: int, holder_id: int) -> bool:
        """Hand an already held lock to another staff member."""
        async with self._connect() as db:
            cur = await db.execute(
                """
                UPDATE pending_applications SET lock_holder_id=?
                WHERE applicant_id=? AND guild_id=? AND lock_timestamp IS NOT NULL
                """,
                (int(holder_id), int(applicant_id), int(guild_id)),
            )
            await db.commit()
            return cur.rowcount > 0

    async def release_expired_locks(self, now_ms: int, expiry_ms: int) -> int:
        """Clear lock fields on every record locked more than expiry_ms ago."""
        async with self._connect() as db:
            cur = await db.execute(
                """
                UPDATE pending_applications SET lock_timestamp=NULL, lock_holder_id=NULL
                WHERE lock_timestamp IS NOT NULL AND ? - lock_timestamp > ?
                """,
                (int(now_ms), int(expiry_ms)),
            )
            await db.commit()
            released = cur.rowcount
        if released:
            self._logger.info("Released %d expired application lock(s)", released)
        return released
