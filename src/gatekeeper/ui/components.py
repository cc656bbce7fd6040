"""Component builders for the verification flow.

Custom ids carry the state a handler needs (guild, applicant, review post), so
none of these views hold callbacks. Clicks are routed by prefix in
``VerificationCog.on_interaction`` and keep working across restarts.
"""

from __future__ import annotations

import discord

from ..constants import (
    APPROVE_BUTTON,
    BAN_BUTTON,
    BAN_MENU,
    CONFIRM_BUTTON,
    CUSTOM_REASON,
    KICK_BUTTON,
    KICK_MENU,
    MAX_SELECT_LABEL,
    MAX_SELECT_OPTIONS,
    QUESTION_BUTTON,
    RETRY_BUTTON,
    VERIFY_BUTTON,
)
from ..utils import trim_string


def custom_id(prefix: str, *parts: int) -> str:
    return "_".join([prefix, *(str(p) for p in parts)])


def parse_custom_id(value: str) -> tuple[str, list[str]]:
    prefix, _, rest = value.partition("_")
    return prefix, rest.split("_") if rest else []


def guide_view(guild_id: int) -> discord.ui.View:
    view = discord.ui.View(timeout=None)
    view.add_item(
        discord.ui.Button(label="Verify", style=discord.ButtonStyle.primary, custom_id=custom_id(VERIFY_BUTTON, guild_id))
    )
    return view


def attempt_view(guild_id: int, user_id: int) -> discord.ui.View:
    """Confirm / Retry choice sent in DMs at the end of an attempt."""
    view = discord.ui.View(timeout=None)
    view.add_item(
        discord.ui.Button(
            label="Confirm", style=discord.ButtonStyle.success, custom_id=custom_id(CONFIRM_BUTTON, guild_id, user_id)
        )
    )
    view.add_item(
        discord.ui.Button(
            label="Retry", style=discord.ButtonStyle.danger, custom_id=custom_id(RETRY_BUTTON, guild_id, user_id)
        )
    )
    return view


def review_view(user_id: int) -> discord.ui.View:
    view = discord.ui.View(timeout=None)
    for label, prefix, style in (
        ("Approve", APPROVE_BUTTON, discord.ButtonStyle.success),
        ("Question", QUESTION_BUTTON, discord.ButtonStyle.primary),
        ("Kick", KICK_BUTTON, discord.ButtonStyle.danger),
        ("Ban", BAN_BUTTON, discord.ButtonStyle.danger),
    ):
        view.add_item(discord.ui.Button(label=label, style=style, custom_id=custom_id(prefix, user_id)))
    return view


def reason_view(action: str, reasons: list[str], log_channel_id: int, message_id: int) -> discord.ui.View:
    """Preset reasons plus a Custom entry, tied to one review post."""
    prefix = KICK_MENU if action == "kick" else BAN_MENU
    options: list[discord.SelectOption] = []
    seen: set[str] = set()
    for reason in reasons[: MAX_SELECT_OPTIONS - 1]:
        value = trim_string(reason, MAX_SELECT_LABEL)
        if value in seen or value == CUSTOM_REASON:
            continue
        seen.add(value)
        options.append(discord.SelectOption(label=value, value=value))
    options.append(discord.SelectOption(label=CUSTOM_REASON, value=CUSTOM_REASON, description="Type the reason yourself"))

    view = discord.ui.View(timeout=None)
    view.add_item(
        discord.ui.Select(
            custom_id=custom_id(prefix, log_channel_id, message_id),
            placeholder=f"Pick a {action} reason",
            min_values=1,
            max_values=1,
            options=options,
        )
    )
    return view
