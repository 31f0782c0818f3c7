from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum


class Role(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


@dataclass(slots=True, frozen=True)
class Account:
    """Aggregate root for identity, credit balance and the active session marker.

    Instances are immutable snapshots of a stored record; transitions return a
    new snapshot which the store persists against ``version``.
    """

    account_id: str
    email: str
    credential_hash: str = field(repr=False)
    role: Role
    credits: int
    created_at: datetime
    updated_at: datetime
    active_session_token: str | None = field(default=None, repr=False)
    version: int = 0

    def __post_init__(self) -> None:
        if self.credits < 0:
            raise ValueError("credits cannot be negative")

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @property
    def has_credits(self) -> bool:
        return self.credits > 0

    @property
    def has_active_session(self) -> bool:
        return bool(self.active_session_token)

    def with_credits(self, credits: int, now: datetime) -> Account:
        """Return a copy with a new balance and a refreshed ``updated_at``."""
        return replace(self, credits=credits, updated_at=self.next_updated_at(now))

    def with_session(self, token: str, now: datetime) -> Account:
        """Return a copy whose active session is ``token``."""
        return replace(self, active_session_token=token, updated_at=self.next_updated_at(now))

    def next_updated_at(self, now: datetime) -> datetime:
        """Return a timestamp strictly after the stored ``updated_at``."""
        if now > self.updated_at:
            return now
        return self.updated_at + timedelta(microseconds=1)
