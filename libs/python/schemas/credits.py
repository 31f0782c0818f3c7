"""Credit balance contracts returned by the account service."""

from __future__ import annotations

from pydantic import BaseModel, Field


class CreditBalance(BaseModel):
    account_id: str
    email: str
    credits: int = Field(..., ge=0)
    role: str


class CreditConsumed(BaseModel):
    remaining_credits: int = Field(..., ge=0)
    message: str


class CreditsGranted(BaseModel):
    account_id: str
    new_credit_balance: int = Field(..., ge=0)
    message: str
