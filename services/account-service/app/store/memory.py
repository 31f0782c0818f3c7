"""In-process account store used for development and tests."""

from __future__ import annotations

from dataclasses import replace
from threading import Lock

from ..domain.account import Account
from ..domain.contracts import AccountMutation
from ..domain.errors import AccountAlreadyExists, AccountNotFound
from .base import VersionConflict


class InMemoryAccountStore:
    """Thread-safe dictionary-backed store with compare-and-swap updates."""

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._ids_by_email: dict[str, str] = {}
        self._lock = Lock()

    def insert(self, account: Account) -> Account:
        with self._lock:
            if account.email in self._ids_by_email:
                raise AccountAlreadyExists()
            if account.account_id in self._accounts:
                raise AccountAlreadyExists()
            self._accounts[account.account_id] = account
            self._ids_by_email[account.email] = account.account_id
            return account

    def find_by_id(self, account_id: str) -> Account | None:
        with self._lock:
            return self._accounts.get(account_id)

    def find_by_email(self, email: str) -> Account | None:
        with self._lock:
            account_id = self._ids_by_email.get(email)
            if account_id is None:
                return None
            return self._accounts[account_id]

    def conditional_update(
        self, account_id: str, expected_version: int, mutation: AccountMutation
    ) -> Account:
        with self._lock:
            current = self._accounts.get(account_id)
            if current is None:
                raise AccountNotFound()
            if current.version != expected_version:
                raise VersionConflict(account_id, expected_version)
            updated = replace(
                current,
                credits=mutation.credits,
                active_session_token=mutation.active_session_token,
                updated_at=mutation.updated_at,
                version=current.version + 1,
            )
            self._accounts[account_id] = updated
            return updated

    def __len__(self) -> int:
        with self._lock:
            return len(self._accounts)
