from __future__ import annotations

import jwt
import pytest

from app.config import get_settings
from app.security.passwords import MAX_SECRET_BYTES, BcryptCredentialVerifier
from app.security.tokens import BearerClaims, issue_access_token, read_bearer_claims


def test_bearer_round_trip_carries_session():
    token, expires_in = issue_access_token(subject="acc-1", session_token="sid-1", role="USER")
    claims = read_bearer_claims(token)
    assert claims.account_id == "acc-1"
    assert claims.session_token == "sid-1"
    assert claims == BearerClaims(account_id="acc-1", session_token="sid-1")
    assert expires_in == get_settings().jwt_ttl_seconds


def test_foreign_signature_is_rejected():
    settings = get_settings()
    forged = jwt.encode(
        {"iss": settings.jwt_issuer, "sub": "acc-1", "sid": "sid-1", "exp": 9999999999},
        "someone-elses-secret-that-is-long-enough",
        algorithm="HS256",
    )
    with pytest.raises(jwt.InvalidSignatureError):
        read_bearer_claims(forged)


def test_token_without_session_claim_is_rejected():
    settings = get_settings()
    token = jwt.encode(
        {"iss": settings.jwt_issuer, "sub": "acc-1", "exp": 9999999999},
        settings.jwt_secret,
        algorithm="HS256",
    )
    with pytest.raises(jwt.MissingRequiredClaimError):
        read_bearer_claims(token)


def test_verifier_compares_and_tolerates_bad_hashes(verifier: BcryptCredentialVerifier):
    stored = verifier.hash("pw-123456")
    assert stored != "pw-123456"
    assert verifier.compare("pw-123456", stored)
    assert not verifier.compare("wrong", stored)
    assert not verifier.compare("pw-123456", "not-a-bcrypt-hash")
    assert not verifier.compare("pw-123456", verifier.dummy_hash)


def test_verifier_refuses_to_hash_secrets_bcrypt_would_truncate(verifier: BcryptCredentialVerifier):
    with pytest.raises(ValueError, match="72 bytes"):
        verifier.hash("x" * (MAX_SECRET_BYTES + 1))
    # multi-byte characters count by encoded length
    with pytest.raises(ValueError):
        verifier.hash("é" * 37)
    assert verifier.compare("x" * MAX_SECRET_BYTES, verifier.hash("x" * MAX_SECRET_BYTES))


def test_verifier_treats_overlong_secret_as_mismatch(verifier: BcryptCredentialVerifier):
    stored = verifier.hash("x" * MAX_SECRET_BYTES)
    assert not verifier.compare("x" * (MAX_SECRET_BYTES + 28), stored)
    assert not verifier.compare("x" * 100, verifier.dummy_hash)
