from __future__ import annotations


class GatekeeperError(Exception):
    """Base class for errors surfaced to staff or applicants."""


class ValidationError(GatekeeperError):
    """Bad index, unknown field or wrong value type. Nothing was changed."""


class NotFoundError(GatekeeperError):
    """Missing configuration, record or external entity."""


class PermissionDeniedError(GatekeeperError):
    """The actor or the bot lacks a required capability."""


class ReplyTimeoutError(GatekeeperError):
    """No reply arrived before the deadline."""


class PersistenceError(GatekeeperError):
    """A database write or read failed."""

    def __init__(self, message: str = "A database error occurred. Please try again later.") -> None:
        super().__init__(message)
