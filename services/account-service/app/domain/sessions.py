"""Single-active-session authority.

An account is either without a session or holds exactly one session token.
A login overwrites the token unconditionally, so every earlier token becomes
stale the moment the new one is stored. There is no logout transition.
"""

from __future__ import annotations

import hmac
import secrets
from datetime import datetime
from enum import Enum

from .account import Account
from .errors import SessionInvalidated, Unauthorized

SESSION_TOKEN_BYTES = 32


class SessionState(str, Enum):
    NO_ACTIVE_SESSION = "no_active_session"
    HAS_ACTIVE_SESSION = "has_active_session"


def session_state(account: Account) -> SessionState:
    if account.has_active_session:
        return SessionState.HAS_ACTIVE_SESSION
    return SessionState.NO_ACTIVE_SESSION


def generate_session_token() -> str:
    """Return a fresh, unguessable session token."""
    return secrets.token_urlsafe(SESSION_TOKEN_BYTES)


def start_session(account: Account, token: str, now: datetime) -> Account:
    """Supersede any prior session with ``token``."""
    if not token:
        raise ValueError("session token must not be empty")
    return account.with_session(token, now)


def validate_session(account: Account, presented_token: str | None) -> Account:
    """Return ``account`` when ``presented_token`` is its current session.

    Raises
    ------
    Unauthorized
        When no token was presented at all.
    SessionInvalidated
        When the token does not match the stored one, or the account has no
        active session.
    """
    if not presented_token:
        raise Unauthorized("no session token presented")
    current = account.active_session_token
    if not current:
        raise SessionInvalidated()
    if not hmac.compare_digest(current.encode("utf-8"), presented_token.encode("utf-8")):
        raise SessionInvalidated()
    return account
