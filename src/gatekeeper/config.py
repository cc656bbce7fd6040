from __future__ import annotations

import os
from dataclasses import dataclass

from .constants import (
    ANSWER_TIMEOUT_SECONDS,
    LOCK_EXPIRY_SECONDS,
    LOCK_SWEEP_SECONDS,
    REASON_TIMEOUT_SECONDS,
    UPTIME_GRACE_SECONDS,
)


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y", "on"}


def _get_str(name: str, default: str) -> str:
    return os.getenv(name, default).strip() or default


@dataclass(frozen=True)
class Settings:
    token: str
    sync_guild_id: int
    owner_id: int
    sqlite_path: str
    log_level: str
    message_content_intent: bool = True

    # Verification workflow timings
    answer_timeout_seconds: int = ANSWER_TIMEOUT_SECONDS
    reason_timeout_seconds: int = REASON_TIMEOUT_SECONDS
    lock_expiry_seconds: int = LOCK_EXPIRY_SECONDS
    lock_sweep_seconds: int = LOCK_SWEEP_SECONDS
    # Staff components are ignored right after startup so stale locks can expire first.
    uptime_grace_seconds: int = UPTIME_GRACE_SECONDS

    # Server protector bot whose history posts mark users as opted out
    protector_bot_id: int = 0
    protector_message: str = "Server Protector"


def load_settings() -> Settings:
    token = os.getenv("DISCORD_TOKEN", "").strip()
    if not token:
        raise RuntimeError("DISCORD_TOKEN is required")
    return Settings(
        token=token,
        sync_guild_id=_get_int("SYNC_GUILD_ID", 0),
        # Default to 0 to avoid accidentally granting owner powers to a random ID
        owner_id=_get_int("OWNER_ID", 0),
        sqlite_path=_get_str("SQLITE_PATH", "gatekeeper.sqlite3"),
        log_level=_get_str("LOG_LEVEL", "INFO"),
        message_content_intent=_get_bool("MESSAGE_CONTENT_INTENT", True),
        answer_timeout_seconds=_get_int("ANSWER_TIMEOUT_SECONDS", ANSWER_TIMEOUT_SECONDS),
        reason_timeout_seconds=_get_int("REASON_TIMEOUT_SECONDS", REASON_TIMEOUT_SECONDS),
        lock_expiry_seconds=_get_int("LOCK_EXPIRY_SECONDS", LOCK_EXPIRY_SECONDS),
        lock_sweep_seconds=_get_int("LOCK_SWEEP_SECONDS", LOCK_SWEEP_SECONDS),
        uptime_grace_seconds=_get_int("UPTIME_GRACE_SECONDS", UPTIME_GRACE_SECONDS),
        protector_bot_id=_get_int("PROTECTOR_BOT_ID", 0),
        protector_message=_get_str("PROTECTOR_MESSAGE", "Server Protector"),
    )
