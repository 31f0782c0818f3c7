"""Credit ledger transitions.

These are pure functions over an ``Account`` snapshot. They never touch the
store; the account service applies them inside an optimistic update so the
non-negative balance holds under concurrent callers.
"""

from __future__ import annotations

from datetime import datetime

from .account import Account
from .authorization import require_admin
from .errors import InsufficientCredits, InvalidAmount


def consume(account: Account, now: datetime) -> Account:
    """Decrement the balance by exactly one credit."""
    if not account.has_credits:
        raise InsufficientCredits()
    return account.with_credits(account.credits - 1, now)


def validate_amount(amount: int) -> int:
    # bool is an int subclass; True must not grant a credit
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 1:
        raise InvalidAmount()
    return amount


def add(account: Account, amount: int, *, granted_by: Account, now: datetime) -> Account:
    """Increase the balance by ``amount`` on behalf of an administrator."""
    validate_amount(amount)
    require_admin(granted_by)
    return account.with_credits(account.credits + amount, now)
