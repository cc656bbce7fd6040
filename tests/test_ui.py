from __future__ import annotations

import asyncio

import discord

from gatekeeper.constants import FINAL_ATTEMPT_FIELD, MAX_SELECT_OPTIONS, REQUIRED_APPROVALS_FIELD
from gatekeeper.models import PendingApplication
from gatekeeper.testing.fakes import FakeMember
from gatekeeper.ui.components import attempt_view, custom_id, parse_custom_id, reason_view, review_view
from gatekeeper.ui.embeds import is_terminal, review_embed, states_of, with_approvers, with_state
from gatekeeper.utils import trim_string


def test_custom_ids():
    assert custom_id("kickmenu", 10, 20) == "kickmenu_10_20"
    assert parse_custom_id("kickmenu_10_20") == ("kickmenu", ["10", "20"])
    assert parse_custom_id("verify") == ("verify", [])


def test_views_carry_state_in_custom_ids():
    async def build():
        return attempt_view(1, 2), review_view(3)

    attempt, review = asyncio.run(build())
    assert [c.custom_id for c in attempt.children] == ["confirm_1_2", "retry_1_2"]
    assert [c.custom_id for c in review.children] == ["approve_3", "question_3", "kick_3", "ban_3"]
    assert attempt.timeout is None


def test_reason_menu_is_capped_and_deduplicated():
    reasons = ["Spam", "Spam", "Custom"] + [f"Reason {i}" for i in range(40)]

    async def build():
        return reason_view("kick", reasons, 5, 6)

    select = asyncio.run(build()).children[0]
    values = [o.value for o in select.options]
    assert len(values) <= MAX_SELECT_OPTIONS
    assert values.count("Spam") == 1
    assert values[-1] == "Custom" and values.count("Custom") == 1


def test_attempt_pairs_split_per_attempt():
    app = PendingApplication(1, 2, questions=["q1", "q2"], answers=["a", "b", "c", "d", "e"])
    assert app.attempt_pairs() == [
        [("q1", "a"), ("q2", "b")],
        [("q1", "c"), ("q2", "d")],
        [("q1", "e")],
    ]
    assert PendingApplication(1, 2).attempt_pairs() == []


def test_review_embed_and_states():
    applicant = FakeMember(11, "newbie")
    app = PendingApplication(
        11, 2, required_approvers=[7, 8], questions=["q1"], answers=["a", "b", "c"], attempts=3
    )
    embed = review_embed(applicant, app)
    assert [f.name for f in embed.fields] == [
        "Attempt 1",
        "Attempt 2",
        "Attempt 3",
        REQUIRED_APPROVALS_FIELD,
        FINAL_ATTEMPT_FIELD,
    ]
    assert not is_terminal(embed)

    narrowed = with_approvers(embed, [8])
    assert next(f.value for f in narrowed.fields if f.name == REQUIRED_APPROVALS_FIELD) == "<@8>"
    cleared = with_approvers(embed, [])
    assert REQUIRED_APPROVALS_FIELD not in [f.name for f in cleared.fields]

    questioned = with_state(embed, "Questioned", ("Questioned by", "alice (1)"))
    assert states_of(questioned) == ["Questioned"]
    assert not is_terminal(questioned)
    banned = with_state(questioned, "Banned", ("Reason", "Raider"))
    assert is_terminal(banned)
    assert banned.colour == discord.Color.red()
    assert embed.title == "newbie (11)"


def test_state_changes_leave_the_source_embed_alone():
    app = PendingApplication(11, 2, required_approvers=[7, 8], questions=["q1"], answers=["a"], attempts=1)
    embed = review_embed(FakeMember(11, "newbie"), app)
    before = embed.to_dict()

    with_approvers(embed, [8])
    with_approvers(embed, [])
    with_state(embed, "Approved", ("Approved by", "alice (1)"))

    assert embed.to_dict() == before
    assert embed.title == "newbie (11)"
    approvals = next(f for f in embed.fields if f.name == REQUIRED_APPROVALS_FIELD)
    assert approvals.value == "<@7>, <@8>"


def test_trim_string():
    assert trim_string("short", 10) == "short"
    trimmed = trim_string("x" * 50, 10)
    assert len(trimmed) == 10 and trimmed.endswith("...")


def test_settings_embed_marks_unset_values():
    from gatekeeper.cogs.config_commands import settings_embed
    from gatekeeper.models import CommunityConfig

    config = CommunityConfig(guild_id=1, verification_questions=["q1", "q2"], member_role_id=9)
    fields = {f.name: f.value for f in settings_embed("Test", config).fields}
    assert fields["Verification questions"] == "1. q1\n2. q2"
    assert fields["Member role"] == "<@&9>"
    assert fields["Verification log channel"] == "Not set"
    assert fields["Welcome toggle"] == "Disabled"
