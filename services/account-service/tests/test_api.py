from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api import routes
from app.domain.account import Role
from app.domain.service import AccountService
from app.security.tokens import decode_access_token
from app.store.memory import InMemoryAccountStore

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin123456"


@pytest.fixture
def api_client(verifier):
    """Provide a FastAPI test client with isolated state and a seeded admin."""
    service = AccountService(InMemoryAccountStore(), verifier, backoff_ms=0)
    service.register(ADMIN_EMAIL, verifier.hash(ADMIN_PASSWORD), Role.ADMIN)

    app = FastAPI()
    app.include_router(routes.router)
    app.state.account_service = service
    app.state.credential_verifier = verifier

    with TestClient(app) as client:
        yield client, service


def login(client: TestClient, email: str, password: str) -> dict:
    response = client.post("/v1/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def register_user(client: TestClient, admin_token: str, email: str, password: str = "secret123") -> dict:
    response = client.post(
        "/v1/users/register",
        json={"email": email, "password": password},
        headers=bearer(admin_token),
    )
    assert response.status_code == 201, response.text
    return response.json()["user"]


def test_login_returns_session_bound_token(api_client):
    client, _ = api_client
    body = login(client, ADMIN_EMAIL, ADMIN_PASSWORD)

    assert body["token_type"] == "bearer"
    assert body["user"]["email"] == ADMIN_EMAIL
    assert body["user"]["role"] == "ADMIN"
    claims = decode_access_token(body["access_token"])
    assert claims["sub"] == body["user"]["id"]
    assert claims["sid"]


def test_login_failures_share_one_response(api_client):
    client, _ = api_client
    wrong_password = client.post("/v1/auth/login", json={"email": ADMIN_EMAIL, "password": "nope"})
    unknown_email = client.post("/v1/auth/login", json={"email": "ghost@example.com", "password": "nope"})

    assert wrong_password.status_code == 401
    assert unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()


def test_admin_registers_user_with_initial_credits(api_client):
    client, _ = api_client
    admin_token = login(client, ADMIN_EMAIL, ADMIN_PASSWORD)["access_token"]

    response = client.post(
        "/v1/users/register",
        json={"email": "new@example.com", "password": "secret123"},
        headers=bearer(admin_token),
    )
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "User registered successfully"
    assert body["user"]["credits"] == 10
    assert body["user"]["role"] == "USER"
    assert "credential_hash" not in body["user"]

    duplicate = client.post(
        "/v1/users/register",
        json={"email": "new@example.com", "password": "secret123"},
        headers=bearer(admin_token),
    )
    assert duplicate.status_code == 409


def test_register_validates_payload_and_role(api_client):
    client, _ = api_client
    admin_token = login(client, ADMIN_EMAIL, ADMIN_PASSWORD)["access_token"]

    short = client.post(
        "/v1/users/register",
        json={"email": "short@example.com", "password": "123"},
        headers=bearer(admin_token),
    )
    assert short.status_code == 422

    register_user(client, admin_token, "user@example.com")
    user_token = login(client, "user@example.com", "secret123")["access_token"]
    forbidden = client.post(
        "/v1/users/register",
        json={"email": "sneaky@example.com", "password": "secret123"},
        headers=bearer(user_token),
    )
    assert forbidden.status_code == 401


def test_consume_credit_flow(api_client):
    client, _ = api_client
    admin_token = login(client, ADMIN_EMAIL, ADMIN_PASSWORD)["access_token"]
    register_user(client, admin_token, "a@example.com")
    token = login(client, "a@example.com", "secret123")["access_token"]

    balance = client.get("/v1/users/me/credits", headers=bearer(token))
    assert balance.status_code == 200
    assert balance.json()["credits"] == 10

    first = client.post("/v1/users/consume-credit", headers=bearer(token))
    assert first.status_code == 200
    assert first.json() == {"remaining_credits": 9, "message": "Credit consumed successfully"}

    for _ in range(9):
        assert client.post("/v1/users/consume-credit", headers=bearer(token)).status_code == 200

    empty = client.post("/v1/users/consume-credit", headers=bearer(token))
    assert empty.status_code == 402
    assert client.get("/v1/users/me/credits", headers=bearer(token)).json()["credits"] == 0


def test_add_credits_requires_admin(api_client):
    client, service = api_client
    admin_token = login(client, ADMIN_EMAIL, ADMIN_PASSWORD)["access_token"]
    user = register_user(client, admin_token, "u@example.com")
    user_token = login(client, "u@example.com", "secret123")["access_token"]

    granted = client.post(
        "/v1/users/add-credits",
        json={"target_user_id": user["account_id"], "amount": 50},
        headers=bearer(admin_token),
    )
    assert granted.status_code == 200
    assert granted.json() == {
        "account_id": user["account_id"],
        "new_credit_balance": 60,
        "message": "Successfully added 50 credits",
    }

    rejected = client.post(
        "/v1/users/add-credits",
        json={"target_user_id": user["account_id"], "amount": 50},
        headers=bearer(user_token),
    )
    assert rejected.status_code == 401
    assert service.get_balance(user["account_id"]) == 60


def test_add_credits_error_mapping(api_client):
    client, _ = api_client
    admin_token = login(client, ADMIN_EMAIL, ADMIN_PASSWORD)["access_token"]
    user = register_user(client, admin_token, "u@example.com")

    zero = client.post(
        "/v1/users/add-credits",
        json={"target_user_id": user["account_id"], "amount": 0},
        headers=bearer(admin_token),
    )
    assert zero.status_code == 400

    missing = client.post(
        "/v1/users/add-credits",
        json={"target_user_id": "does-not-exist", "amount": 5},
        headers=bearer(admin_token),
    )
    assert missing.status_code == 404


def test_second_login_invalidates_first_token(api_client):
    client, _ = api_client
    first = login(client, ADMIN_EMAIL, ADMIN_PASSWORD)["access_token"]
    assert client.get("/v1/users/me/credits", headers=bearer(first)).status_code == 200

    second = login(client, ADMIN_EMAIL, ADMIN_PASSWORD)["access_token"]

    stale = client.get("/v1/users/me/credits", headers=bearer(first))
    assert stale.status_code == 401
    assert stale.json()["detail"] == "Session invalidated. Another login detected for this account."
    assert stale.headers["www-authenticate"] == "Bearer"
    assert client.get("/v1/users/me/credits", headers=bearer(second)).status_code == 200


def test_missing_or_malformed_bearer_is_rejected(api_client):
    client, _ = api_client
    missing = client.get("/v1/users/me/credits")
    assert missing.status_code == 401
    assert missing.json()["detail"] == "missing bearer token"

    garbage = client.get("/v1/users/me/credits", headers=bearer("not-a-jwt"))
    assert garbage.status_code == 401
    assert garbage.json()["detail"] == "invalid token"


def test_register_rejects_password_longer_than_hash_input(api_client):
    client, _ = api_client
    admin_token = login(client, ADMIN_EMAIL, ADMIN_PASSWORD)["access_token"]

    too_long = client.post(
        "/v1/users/register",
        json={"email": "long@example.com", "password": "x" * 100},
        headers=bearer(admin_token),
    )
    assert too_long.status_code == 422
    # 37 characters, 74 bytes once encoded
    multibyte = client.post(
        "/v1/users/register",
        json={"email": "long@example.com", "password": "é" * 37},
        headers=bearer(admin_token),
    )
    assert multibyte.status_code == 422
    register_user(client, admin_token, "long@example.com", password="x" * 72)
    login(client, "long@example.com", "x" * 72)


def test_login_with_overlong_password_is_plain_rejection(api_client):
    client, _ = api_client
    response = client.post("/v1/auth/login", json={"email": ADMIN_EMAIL, "password": "x" * 100})
    assert response.status_code == 401
    assert response.json() == {"detail": "invalid credentials"}
