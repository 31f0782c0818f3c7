"""Account store contract.

The store is the only durability boundary of the account core. Implementations
must make ``insert`` an atomic unique insert on email and
``conditional_update`` an atomic compare-and-swap on ``version``.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..domain.account import Account
from ..domain.contracts import AccountMutation


class VersionConflict(Exception):
    """The stored record changed since the caller read it."""

    def __init__(self, account_id: str, expected_version: int) -> None:
        super().__init__(f"version conflict for account {account_id} (expected {expected_version})")
        self.account_id = account_id
        self.expected_version = expected_version


@runtime_checkable
class AccountStore(Protocol):
    def insert(self, account: Account) -> Account:
        """Persist a new account or raise ``AccountAlreadyExists``."""
        ...

    def find_by_id(self, account_id: str) -> Account | None:
        ...

    def find_by_email(self, email: str) -> Account | None:
        ...

    def conditional_update(
        self, account_id: str, expected_version: int, mutation: AccountMutation
    ) -> Account:
        """Apply ``mutation`` if the stored version equals ``expected_version``.

        Returns the stored account with its version incremented. Raises
        ``VersionConflict`` on a stale version and ``AccountNotFound`` when the
        record does not exist.
        """
        ...
