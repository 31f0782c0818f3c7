"""Account service orchestrating the store, credential checks, sessions and credits."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Callable

from tenacity import RetryCallState, RetryError, Retrying, retry_if_exception_type, stop_after_attempt, wait_random

from .account import Account, Role
from .authorization import require_admin
from .contracts import AccountMutation, ConsumeResult, GrantResult, LoginResult
from .errors import AccountNotFound, Conflict, Unauthorized
from . import ledger, sessions
from ..metrics import CREDIT_OPERATIONS, LOGINS, STORE_CONFLICTS
from ..security.passwords import CredentialVerifier
from ..store.base import AccountStore, VersionConflict

logger = logging.getLogger(__name__)

Transition = Callable[[Account, datetime], Account]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountService:
    """Account workflows over an ``AccountStore``.

    The service keeps no account state between calls. Every mutation is a
    read-compute-write cycle guarded by the store's conditional update and
    restarted from a fresh read when the record changed underneath it.
    """

    def __init__(
        self,
        store: AccountStore,
        verifier: CredentialVerifier,
        *,
        initial_user_credits: int = 10,
        max_attempts: int = 5,
        backoff_ms: int = 5,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Store dependencies and the optimistic retry policy."""
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._store = store
        self._verifier = verifier
        self._initial_user_credits = initial_user_credits
        self._max_attempts = max_attempts
        self._backoff_ms = backoff_ms
        self._clock = clock

    def register(self, email: str, credential_hash: str, role: Role | str = Role.USER) -> Account:
        """Create an account; USER accounts start with the initial grant, ADMIN with 0.

        ``role`` may be given by value (``"USER"``, ``"ADMIN"``); any other value
        raises ``ValueError`` before anything is stored.
        """
        role = Role(role)
        now = self._clock()
        account = Account(
            account_id=str(uuid.uuid4()),
            email=email,
            credential_hash=credential_hash,
            role=role,
            credits=self._initial_user_credits if role is Role.USER else 0,
            created_at=now,
            updated_at=now,
        )
        stored = self._store.insert(account)
        logger.info("registered account %s with role %s", stored.account_id, stored.role.value)
        return stored

    def login(self, email: str, secret: str) -> LoginResult:
        """Verify credentials and make a fresh session the only valid one.

        Unknown emails and wrong secrets raise the same ``Unauthorized``.
        """
        account = self._store.find_by_email(email)
        if account is None:
            self._verifier.compare(secret, self._verifier.dummy_hash)
            LOGINS.labels(outcome="rejected").inc()
            raise Unauthorized("invalid credentials")
        if not self._verifier.compare(secret, account.credential_hash):
            LOGINS.labels(outcome="rejected").inc()
            raise Unauthorized("invalid credentials")

        token = sessions.generate_session_token()
        try:
            updated = self._mutate(
                account.account_id,
                lambda current, now: sessions.start_session(current, token, now),
                operation="login",
            )
        except AccountNotFound as exc:
            LOGINS.labels(outcome="rejected").inc()
            raise Unauthorized("invalid credentials") from exc
        LOGINS.labels(outcome="accepted").inc()
        logger.info("account %s logged in; earlier sessions superseded", updated.account_id)
        return LoginResult(
            account_id=updated.account_id,
            email=updated.email,
            role=updated.role,
            session_token=token,
        )

    def authenticate_request(self, account_id: str, presented_token: str | None) -> Account:
        """Return the account when ``presented_token`` is its active session.

        Raises ``SessionInvalidated`` when a newer login replaced the token and
        ``Unauthorized`` when the account is unknown or no token was presented.
        """
        account = self._store.find_by_id(account_id)
        if account is None:
            raise Unauthorized("unknown account")
        try:
            return sessions.validate_session(account, presented_token)
        except Unauthorized:
            logger.info(
                "rejected session for account %s (%s)",
                account_id,
                sessions.session_state(account).value,
            )
            raise

    def get_account(self, account_id: str) -> Account:
        account = self._store.find_by_id(account_id)
        if account is None:
            raise AccountNotFound()
        return account

    def get_balance(self, account_id: str) -> int:
        return self.get_account(account_id).credits

    def consume_credit(self, account_id: str) -> ConsumeResult:
        """Spend exactly one credit from ``account_id``."""
        try:
            updated = self._mutate(account_id, ledger.consume, operation="consume")
        except Exception as exc:
            CREDIT_OPERATIONS.labels(operation="consume", outcome=_outcome(exc)).inc()
            raise
        CREDIT_OPERATIONS.labels(operation="consume", outcome="ok").inc()
        return ConsumeResult(account_id=updated.account_id, remaining_credits=updated.credits)

    def grant_credits(self, admin_id: str, target_id: str, amount: int) -> GrantResult:
        """Add ``amount`` credits to ``target_id`` on behalf of ``admin_id``."""
        try:
            ledger.validate_amount(amount)
            admin = require_admin(self.get_account(admin_id))
            updated = self._mutate(
                target_id,
                lambda current, now: ledger.add(current, amount, granted_by=admin, now=now),
                operation="grant",
            )
        except Exception as exc:
            CREDIT_OPERATIONS.labels(operation="grant", outcome=_outcome(exc)).inc()
            raise
        CREDIT_OPERATIONS.labels(operation="grant", outcome="ok").inc()
        logger.info("admin %s granted %s credits to %s", admin_id, amount, target_id)
        return GrantResult(account_id=updated.account_id, new_balance=updated.credits, amount=amount)

    def _mutate(self, account_id: str, transition: Transition, *, operation: str) -> Account:
        """Run ``transition`` against the latest stored state until the write sticks.

        Only ``VersionConflict`` is retried; business failures raised by
        ``transition`` propagate on the first attempt.
        """

        def log_retry(retry_state: RetryCallState) -> None:
            logger.info(
                "%s on account %s lost a race (attempt %s/%s)",
                operation,
                account_id,
                retry_state.attempt_number,
                self._max_attempts,
            )

        retrying = Retrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_random(0, self._backoff_ms / 1000),
            retry=retry_if_exception_type(VersionConflict),
            before_sleep=log_retry,
        )
        try:
            return retrying(self._apply_once, account_id, transition, operation)
        except RetryError as exc:
            logger.warning("%s on account %s gave up after %s attempts", operation, account_id, self._max_attempts)
            raise Conflict() from exc

    def _apply_once(self, account_id: str, transition: Transition, operation: str) -> Account:
        current = self._store.find_by_id(account_id)
        if current is None:
            raise AccountNotFound()
        updated = transition(current, self._clock())
        try:
            return self._store.conditional_update(
                account_id, current.version, AccountMutation.from_account(updated)
            )
        except VersionConflict:
            STORE_CONFLICTS.labels(operation=operation).inc()
            raise


def _outcome(exc: Exception) -> str:
    return getattr(exc, "kind", "error")
