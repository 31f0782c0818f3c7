"""Single authorization predicate for privileged account operations."""

from __future__ import annotations

from .account import Account, Role
from .errors import Unauthorized


def require_role(account: Account, role: Role) -> Account:
    """Return ``account`` when it holds ``role``, otherwise raise ``Unauthorized``."""
    if account.role != role:
        raise Unauthorized(f"{role.value} role required")
    return account


def require_admin(account: Account) -> Account:
    return require_role(account, Role.ADMIN)
