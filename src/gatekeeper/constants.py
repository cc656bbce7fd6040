from __future__ import annotations

from typing import Final

import discord

# Discord limits
MAX_EMBED_TITLE: Final[int] = 256
MAX_FIELD_NAME: Final[int] = 256
MAX_FIELD_VALUE: Final[int] = 1024
MAX_FIELDS_PER_EMBED: Final[int] = 25
MAX_SELECT_OPTIONS: Final[int] = 25
MAX_SELECT_LABEL: Final[int] = 100

# Workflow timings
ANSWER_TIMEOUT_SECONDS: Final[int] = 120
REASON_TIMEOUT_SECONDS: Final[int] = 120
TEXT_CAPTURE_TIMEOUT_SECONDS: Final[int] = 120
RESET_CONFIRM_TIMEOUT_SECONDS: Final[int] = 30
LOCK_EXPIRY_SECONDS: Final[int] = 180
LOCK_SWEEP_SECONDS: Final[int] = 30
UPTIME_GRACE_SECONDS: Final[int] = 300

MAX_ATTEMPTS: Final[int] = 3

# Custom id prefixes for persistent components
VERIFY_BUTTON: Final[str] = "verify"
CONFIRM_BUTTON: Final[str] = "confirm"
RETRY_BUTTON: Final[str] = "retry"
APPROVE_BUTTON: Final[str] = "approve"
QUESTION_BUTTON: Final[str] = "question"
KICK_BUTTON: Final[str] = "kick"
BAN_BUTTON: Final[str] = "ban"
KICK_MENU: Final[str] = "kickmenu"
BAN_MENU: Final[str] = "banmenu"

CUSTOM_REASON: Final[str] = "Custom"

# Review post field names
REQUIRED_APPROVALS_FIELD: Final[str] = "Required approvals"
HANDLED_BY_FIELD: Final[str] = "Handled by"
QUESTIONED_BY_FIELD: Final[str] = "Questioned by"
REASON_FIELD: Final[str] = "Reason"
FINAL_ATTEMPT_FIELD: Final[str] = "Note"

# Review post terminal states: title suffix -> color
STATE_APPROVED: Final[str] = "Approved"
STATE_QUESTIONED: Final[str] = "Questioned"
STATE_KICKED: Final[str] = "Kicked"
STATE_BANNED: Final[str] = "Banned"
STATE_LEFT: Final[str] = "Left"
STATE_CLEARED: Final[str] = "Cleared"

TERMINAL_STATES: Final[frozenset[str]] = frozenset(
    {STATE_APPROVED, STATE_KICKED, STATE_BANNED, STATE_LEFT, STATE_CLEARED}
)

COLORS = {
    "review": discord.Color.blurple(),
    STATE_APPROVED: discord.Color.green(),
    STATE_QUESTIONED: discord.Color.yellow(),
    STATE_KICKED: discord.Color.red(),
    STATE_BANNED: discord.Color.red(),
    STATE_LEFT: discord.Color.dark_orange(),
    STATE_CLEARED: discord.Color.blue(),
    "error": discord.Color.from_rgb(0xED, 0x42, 0x45),
    "info": discord.Color.from_rgb(0x34, 0x98, 0xDB),
}

WELCOME_MEMBER_PLACEHOLDER: Final[str] = "[member]"

# Error messages
ERROR_MESSAGES = {
    "missing_permissions": "You don't have permission to use this command.",
    "not_staff": "Only staff members can interact with this.",
    "guild_only": "This can only be used in a server.",
    "persistence": "A database error occurred. Please try again later.",
    "unexpected": "Something went wrong running that command.",
    "starting_up": "The bot just started, please wait a few minutes before handling applications.",
    "locked": "Someone's already taking action on this application.",
}
