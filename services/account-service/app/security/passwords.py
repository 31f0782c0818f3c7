"""Credential hashing and verification backed by bcrypt."""

from __future__ import annotations

import logging
from typing import Protocol

import bcrypt

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a secret
MAX_SECRET_BYTES = 72


class CredentialVerifier(Protocol):
    @property
    def dummy_hash(self) -> str:
        """A valid hash of no real credential, compared against for unknown accounts."""
        ...

    def hash(self, secret: str) -> str:
        ...

    def compare(self, secret: str, credential_hash: str) -> bool:
        ...


class BcryptCredentialVerifier:
    """Hash and compare secrets with a configurable bcrypt work factor."""

    def __init__(self, rounds: int = 12) -> None:
        self._rounds = rounds
        # compared against when the account does not exist so both login
        # failure paths cost one bcrypt check
        self._dummy_hash = self.hash("not-a-real-credential")

    @property
    def dummy_hash(self) -> str:
        return self._dummy_hash

    def hash(self, secret: str) -> str:
        """Return a bcrypt hash of ``secret``.

        Raises ``ValueError`` for secrets longer than ``MAX_SECRET_BYTES`` once
        UTF-8 encoded.
        """
        encoded = secret.encode("utf-8")
        if len(encoded) > MAX_SECRET_BYTES:
            raise ValueError(f"secret must be at most {MAX_SECRET_BYTES} bytes")
        salt = bcrypt.gensalt(rounds=self._rounds)
        return bcrypt.hashpw(encoded, salt).decode("utf-8")

    def compare(self, secret: str, credential_hash: str) -> bool:
        """Return ``True`` when ``secret`` matches ``credential_hash``.

        Malformed hashes and secrets longer than ``MAX_SECRET_BYTES`` compare
        as a mismatch.
        """
        encoded = secret.encode("utf-8")
        if len(encoded) > MAX_SECRET_BYTES:
            return False
        try:
            return bcrypt.checkpw(encoded, credential_hash.encode("utf-8"))
        except ValueError:
            logger.warning("stored credential hash is not a valid bcrypt hash")
            return False
