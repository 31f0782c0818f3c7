"""Domain-level contracts shared by the service, the stores and the API layer."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .account import Account, Role


@dataclass(slots=True, frozen=True)
class AccountMutation:
    """Fields written together by a single conditional store update."""

    credits: int
    active_session_token: str | None
    updated_at: datetime

    @classmethod
    def from_account(cls, account: Account) -> "AccountMutation":
        return cls(
            credits=account.credits,
            active_session_token=account.active_session_token,
            updated_at=account.updated_at,
        )


@dataclass(slots=True, frozen=True)
class LoginResult:
    """Identity and fresh session token returned by a successful login."""

    account_id: str
    email: str
    role: Role
    session_token: str


@dataclass(slots=True, frozen=True)
class ConsumeResult:
    account_id: str
    remaining_credits: int
    message: str = "Credit consumed successfully"


@dataclass(slots=True, frozen=True)
class GrantResult:
    account_id: str
    new_balance: int
    amount: int

    @property
    def message(self) -> str:
        return f"Successfully added {self.amount} credits"
