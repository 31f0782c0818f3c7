from __future__ import annotations

import pytest

from app.domain.account import Role
from app.seed import seed_admin


def test_seed_admin_creates_admin_once(service, verifier):
    admin = seed_admin(service, verifier, "admin@example.com", "admin123456")
    assert admin is not None
    assert admin.role is Role.ADMIN
    assert admin.credits == 0
    assert service.login("admin@example.com", "admin123456").role is Role.ADMIN

    assert seed_admin(service, verifier, "admin@example.com", "other-password") is None


def test_seed_admin_requires_password(service, verifier):
    with pytest.raises(ValueError):
        seed_admin(service, verifier, "admin@example.com", "")
