"""Utilities for issuing and validating bearer JWTs that carry a session token."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

import jwt

from ..config import get_settings


@dataclass(slots=True, frozen=True)
class BearerClaims:
    """Identity extracted from a verified bearer token."""

    account_id: str
    session_token: str


def issue_access_token(*, subject: str, session_token: str, role: str) -> tuple[str, int]:
    """Create a signed JWT wrapping the account's current session token.

    Parameters
    ----------
    subject:
        Account identifier to embed in the token ``sub`` claim.
    session_token:
        Session marker stored on the account; embedded as the ``sid`` claim.
    role:
        Role at login time. Informational only: privileged calls re-check the
        stored role.

    Returns
    -------
    tuple[str, int]
        A tuple containing the encoded JWT string and its TTL (in seconds).
    """

    settings = get_settings()
    now = int(time.time())
    expires_in = settings.jwt_ttl_seconds
    payload: dict[str, Any] = {
        "iss": settings.jwt_issuer,
        "sub": subject,
        "sid": session_token,
        "role": role,
        "iat": now,
        "exp": now + expires_in,
    }

    token = jwt.encode(payload, settings.jwt_secret, algorithm="HS256")
    return token, expires_in


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and verify a JWT returning its payload.

    Raises
    ------
    jwt.PyJWTError
        Propagated when the token is invalid, expired, or signed by another issuer.
    """

    settings = get_settings()
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=["HS256"],
        issuer=settings.jwt_issuer,
        options={"require": ["sub", "sid", "exp"]},
    )


def read_bearer_claims(token: str) -> BearerClaims:
    """Return the account id and session token carried by ``token``."""
    claims = decode_access_token(token)
    return BearerClaims(
        account_id=str(claims["sub"]),
        session_token=str(claims["sid"]),
    )
