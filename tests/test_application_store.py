from __future__ import annotations

import asyncio

from gatekeeper.models import PendingApplication
from gatekeeper.services.lock_sweeper import LockSweeper

GUILD = 777
EXPIRY_MS = 180_000


def _app(applicant_id: int = 1, **kwargs) -> PendingApplication:
    return PendingApplication(applicant_id=applicant_id, guild_id=GUILD, questions=["q1", "q2"], **kwargs)


def test_one_record_per_applicant_and_guild(applications):
    async def scenario():
        first = await applications.create(_app())
        second = await applications.create(_app())
        other_guild = await applications.create(PendingApplication(applicant_id=1, guild_id=GUILD + 1))
        return first, second, other_guild

    first, second, other_guild = asyncio.run(scenario())
    assert first.success
    assert not second.success
    assert "already started" in second.message
    assert other_guild.success


def test_setters_report_missing_records(applications):
    async def scenario():
        missing = await applications.set_answers(99, GUILD, ["x"])
        await applications.create(_app(99))
        present = await applications.set_answers(99, GUILD, ["x", "y"])
        await applications.increment_attempts(99, GUILD)
        return missing, present, await applications.get(99, GUILD)

    missing, present, app = asyncio.run(scenario())
    assert missing is False
    assert present is True
    assert app.answers == ["x", "y"]
    assert app.attempts == 1


def test_lookup_by_review_message_and_questioning_channel(applications):
    async def scenario():
        await applications.create(_app(5))
        await applications.set_review_message_id(5, GUILD, 1234)
        await applications.set_questioning_channel_id(5, GUILD, 4321)
        return (
            await applications.get_by_review_message(1234),
            await applications.get_by_questioning_channel(4321),
            await applications.get_by_review_message(1),
        )

    by_message, by_channel, nothing = asyncio.run(scenario())
    assert by_message.applicant_id == 5
    assert by_channel.applicant_id == 5
    assert nothing is None


def test_remove_reports_missing(applications):
    async def scenario():
        await applications.create(_app(3))
        return await applications.remove(3, GUILD), await applications.remove(3, GUILD)

    first, second = asyncio.run(scenario())
    assert first.success
    assert not second.success


def test_lock_is_taken_once(applications):
    async def scenario():
        await applications.create(_app())
        first = await applications.acquire_lock(1, GUILD, 10, 1_000)
        second = await applications.acquire_lock(1, GUILD, 11, 2_000)
        return first, second, await applications.get(1, GUILD)

    first, second, app = asyncio.run(scenario())
    assert first is True
    assert second is False
    assert app.lock_holder_id == 10
    assert app.lock_timestamp == 1_000


def test_concurrent_lock_attempts_have_one_winner(applications):
    async def scenario():
        await applications.create(_app())
        return await asyncio.gather(
            *(applications.acquire_lock(1, GUILD, holder, 1_000) for holder in range(10, 16))
        )

    results = asyncio.run(scenario())
    assert results.count(True) == 1


def test_sweep_releases_only_expired_locks(applications):
    async def scenario():
        await applications.create(_app(1, answers=["a", "b"], attempts=1))
        await applications.create(_app(2))
        await applications.acquire_lock(1, GUILD, 10, 1_000)
        await applications.acquire_lock(2, GUILD, 11, 50_000)
        at_boundary = await applications.release_expired_locks(1_000 + EXPIRY_MS, EXPIRY_MS)
        past_boundary = await applications.release_expired_locks(1_000 + EXPIRY_MS + 1, EXPIRY_MS)
        return at_boundary, past_boundary, await applications.get(1, GUILD), await applications.get(2, GUILD)

    at_boundary, past_boundary, expired, fresh = asyncio.run(scenario())
    assert at_boundary == 0
    assert past_boundary == 1
    assert expired.lock_timestamp is None and expired.lock_holder_id is None
    assert expired.answers == ["a", "b"] and expired.attempts == 1
    assert fresh.lock_holder_id == 11


def test_remove_approver(applications):
    async def scenario():
        await applications.create(_app(required_approvers=[21, 22]))
        return (
            await applications.remove_approver(1, GUILD, 21),
            await applications.remove_approver(1, GUILD, 21),
            await applications.remove_approver(1, GUILD, 22),
        )

    first, again, last = asyncio.run(scenario())
    assert first == [22]
    assert again is None
    assert last == []


def test_set_lock_holder_needs_a_held_lock(applications):
    async def scenario():
        await applications.create(_app())
        unheld = await applications.set_lock_holder(1, GUILD, 30)
        await applications.acquire_lock(1, GUILD, 10, 1_000)
        held = await applications.set_lock_holder(1, GUILD, 30)
        return unheld, held, await applications.get(1, GUILD)

    unheld, held, app = asyncio.run(scenario())
    assert unheld is False
    assert held is True
    assert app.lock_holder_id == 30


def test_opt_out_store(opt_outs):
    async def scenario():
        added = await opt_outs.add(8)
        again = await opt_outs.add(8)
        return added, again, await opt_outs.is_opted_out(8), await opt_outs.is_opted_out(9)

    added, again, flagged, other = asyncio.run(scenario())
    assert added.success and not again.success
    assert flagged is True
    assert other is False


def test_sweeper_runs_until_stopped(applications):
    sweeper = LockSweeper(applications, expiry_seconds=1, every_seconds=1, clock=lambda: 10_000)

    async def scenario():
        await applications.create(PendingApplication(1, 2))
        await applications.acquire_lock(1, 2, 3, 1_000)
        sweeper.start()
        await asyncio.sleep(0.2)
        await sweeper.stop()
        return await applications.get(1, 2)

    app = asyncio.run(scenario())
    assert app.lock_holder_id is None
