from __future__ import annotations

import copy
from typing import Any, Optional

import discord

from ..constants import (
    COLORS,
    FINAL_ATTEMPT_FIELD,
    MAX_ATTEMPTS,
    MAX_EMBED_TITLE,
    MAX_FIELD_NAME,
    MAX_FIELD_VALUE,
    MAX_FIELDS_PER_EMBED,
    REQUIRED_APPROVALS_FIELD,
    TERMINAL_STATES,
)
from ..models import PendingApplication
from ..utils import mention_list, trim_string

_STATE_SEPARATOR = " | "


def _clone(embed: discord.Embed) -> discord.Embed:
    # Embed.copy() shares the field list with the source
    return discord.Embed.from_dict(copy.deepcopy(embed.to_dict()))


def review_embed(applicant: Any, app: PendingApplication) -> discord.Embed:
    """Summary of one application as posted to the verification log channel."""
    embed = discord.Embed(
        title=trim_string(f"{applicant.name} ({applicant.id})", MAX_EMBED_TITLE),
        description=f"{applicant.mention} applied to join.",
        color=COLORS["review"],
    )
    # reserve room for the approvals and note fields
    budget = MAX_FIELDS_PER_EMBED - 2
    for number, pairs in enumerate(app.attempt_pairs()[:budget], start=1):
        value = "\n".join(
            f"**{trim_string(question, MAX_FIELD_NAME)}**\n{answer or '-'}" for question, answer in pairs
        )
        embed.add_field(name=f"Attempt {number}", value=trim_string(value, MAX_FIELD_VALUE), inline=False)

    if app.required_approvers:
        embed.add_field(name=REQUIRED_APPROVALS_FIELD, value=mention_list(app.required_approvers), inline=False)
    if app.attempts == MAX_ATTEMPTS:
        embed.add_field(
            name=FINAL_ATTEMPT_FIELD,
            value=f"The applicant used all {MAX_ATTEMPTS} attempts.",
            inline=False,
        )
    return embed


def with_state(embed: discord.Embed, state: str, *fields: tuple[str, str]) -> discord.Embed:
    """Copy of a review embed marked with a state suffix, color and extra fields."""
    updated = _clone(embed)
    updated.title = trim_string(f"{embed.title or ''}{_STATE_SEPARATOR}{state}", MAX_EMBED_TITLE)
    updated.colour = COLORS[state]
    for name, value in fields:
        updated.add_field(name=name, value=trim_string(value, MAX_FIELD_VALUE), inline=False)
    return updated


def with_approvers(embed: discord.Embed, remaining: list[int]) -> discord.Embed:
    """Copy of a review embed whose approvals field lists only the remaining approvers."""
    updated = _clone(embed)
    kept = [(f.name, f.value, f.inline) for f in embed.fields if f.name != REQUIRED_APPROVALS_FIELD]
    updated.clear_fields()
    for name, value, inline in kept:
        updated.add_field(name=name, value=value, inline=inline)
    if remaining:
        updated.add_field(name=REQUIRED_APPROVALS_FIELD, value=mention_list(remaining), inline=False)
    return updated


def states_of(embed: discord.Embed) -> list[str]:
    title = embed.title or ""
    return [part.strip() for part in title.split(_STATE_SEPARATOR)[1:]]


def is_terminal(embed: Optional[discord.Embed]) -> bool:
    if embed is None:
        return False
    return any(state in TERMINAL_STATES for state in states_of(embed))
