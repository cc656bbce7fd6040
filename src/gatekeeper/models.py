from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Response:
    """Uniform result handed back to the command layer for display."""

    success: bool
    message: str

    @classmethod
    def ok(cls, message: str) -> "Response":
        return cls(True, message)

    @classmethod
    def fail(cls, message: str) -> "Response":
        return cls(False, message)


@dataclass(frozen=True)
class PendingApplication:
    applicant_id: int
    guild_id: int
    required_approvers: list[int] = field(default_factory=list)
    questions: list[str] = field(default_factory=list)
    answers: list[str] = field(default_factory=list)
    attempts: int = 0
    review_message_id: Optional[int] = None
    questioning_channel_id: Optional[int] = None
    lock_timestamp: Optional[int] = None
    lock_holder_id: Optional[int] = None

    @property
    def locked(self) -> bool:
        return self.lock_timestamp is not None

    def attempt_pairs(self) -> list[list[tuple[str, str]]]:
        """Split the flat answer list into one list of (question, answer) pairs per attempt.

        Answers are walked in lockstep with the question snapshot; an attempt is
        flushed each time the question index wraps back to zero.
        """
        if not self.questions:
            return []
        attempts: list[list[tuple[str, str]]] = []
        current: list[tuple[str, str]] = []
        for i, answer in enumerate(self.answers):
            index = i % len(self.questions)
            if index == 0 and current:
                attempts.append(current)
                current = []
            current.append((self.questions[index], answer))
        if current:
            attempts.append(current)
        return attempts


@dataclass(frozen=True)
class CommunityConfig:
    guild_id: int
    verification_message: Optional[str] = None
    verification_ending_message: Optional[str] = None
    verification_questions: list[str] = field(default_factory=list)
    verification_log_channel_id: Optional[int] = None
    verification_approvers: list[int] = field(default_factory=list)
    verification_history_channel_id: Optional[int] = None
    questioning_category_id: Optional[int] = None
    questioning_log_channel_id: Optional[int] = None
    welcome_channel_id: Optional[int] = None
    welcome_message: Optional[str] = None
    welcome_enabled: bool = False
    member_role_id: Optional[int] = None
    unverified_role_id: Optional[int] = None
    staff_role_ids: list[int] = field(default_factory=list)
    kick_reasons: list[str] = field(default_factory=list)
    ban_reasons: list[str] = field(default_factory=list)
    app_log_enabled: bool = False
    app_log_channel_id: Optional[int] = None
