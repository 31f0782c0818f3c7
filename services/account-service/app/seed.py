"""Create the initial administrator account.

Run with ``python -m app.seed``; reads ``ADMIN_EMAIL`` and ``ADMIN_PASSWORD``.
"""

from __future__ import annotations

import logging
import sys

from .config import get_settings
from .domain.account import Account, Role
from .domain.errors import AccountAlreadyExists
from .domain.service import AccountService
from .security.passwords import BcryptCredentialVerifier, CredentialVerifier
from .store.factory import build_account_store

logger = logging.getLogger(__name__)


def seed_admin(
    service: AccountService, verifier: CredentialVerifier, email: str, password: str
) -> Account | None:
    """Register ``email`` as an ADMIN account; return ``None`` if it already exists."""
    if not password:
        raise ValueError("admin password must not be empty")
    try:
        admin = service.register(email, verifier.hash(password), Role.ADMIN)
    except AccountAlreadyExists:
        logger.warning("admin account %s already exists", email)
        return None
    logger.info("admin account %s created", admin.account_id)
    return admin


def main() -> int:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    if not settings.admin_password:
        logger.error("ADMIN_PASSWORD must be set")
        return 1
    store, close_store = build_account_store(settings)
    verifier = BcryptCredentialVerifier(rounds=settings.bcrypt_rounds)
    try:
        seed_admin(AccountService(store, verifier), verifier, settings.admin_email, settings.admin_password)
    finally:
        close_store()
    return 0


if __name__ == "__main__":
    sys.exit(main())
