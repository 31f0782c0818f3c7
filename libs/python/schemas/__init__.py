"""Shared schema exports."""

from .account import AccountSummary, SessionUser
from .credits import CreditBalance, CreditConsumed, CreditsGranted

__all__ = [
    "AccountSummary",
    "SessionUser",
    "CreditBalance",
    "CreditConsumed",
    "CreditsGranted",
]
