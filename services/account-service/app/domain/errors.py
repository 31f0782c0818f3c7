"""Typed failures raised by the account core.

Every failure carries a stable ``kind`` so transport layers can map it to a
status code without inspecting messages.
"""

from __future__ import annotations


class AccountError(Exception):
    """Base class for all account-core failures."""

    kind = "account_error"
    default_message = "account operation failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class AccountNotFound(AccountError):
    kind = "account_not_found"
    default_message = "account not found"


class AccountAlreadyExists(AccountError):
    kind = "account_already_exists"
    default_message = "account already exists"


class Unauthorized(AccountError):
    """Bad credential, missing session or insufficient role."""

    kind = "unauthorized"
    default_message = "unauthorized"


class SessionInvalidated(Unauthorized):
    """The presented session was superseded by a newer login."""

    kind = "session_invalidated"
    default_message = "Session invalidated. Another login detected for this account."


class InsufficientCredits(AccountError):
    kind = "insufficient_credits"
    default_message = "insufficient credits"


class InvalidAmount(AccountError):
    kind = "invalid_amount"
    default_message = "amount must be an integer greater than or equal to 1"


class Conflict(AccountError):
    """Optimistic update retries were exhausted."""

    kind = "conflict"
    default_message = "account was modified concurrently, retry the request"
