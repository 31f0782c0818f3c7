from __future__ import annotations

import pytest

from app.domain.service import AccountService
from app.security.passwords import BcryptCredentialVerifier
from app.store.memory import InMemoryAccountStore


@pytest.fixture(scope="session")
def verifier() -> BcryptCredentialVerifier:
    # minimum work factor keeps the suite fast
    return BcryptCredentialVerifier(rounds=4)


@pytest.fixture
def store() -> InMemoryAccountStore:
    return InMemoryAccountStore()


@pytest.fixture
def service(store, verifier) -> AccountService:
    return AccountService(store, verifier, initial_user_credits=10, max_attempts=5, backoff_ms=0)
