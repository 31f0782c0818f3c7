"""Account-related DTOs shared across services."""

from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel, EmailStr


class AccountSummary(BaseModel):
    account_id: str
    email: EmailStr
    credits: int
    role: str
    created_at: datetime


class SessionUser(BaseModel):
    id: str
    email: EmailStr
    role: str
