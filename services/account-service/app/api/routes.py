"""HTTP route definitions for the account service."""

from __future__ import annotations

import logging

import jwt
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pydantic import BaseModel, EmailStr, Field, field_validator

from schemas import AccountSummary, CreditBalance, CreditConsumed, CreditsGranted, SessionUser

from ..domain.account import Account, Role
from ..domain.errors import (
    AccountAlreadyExists,
    AccountError,
    AccountNotFound,
    Conflict,
    InsufficientCredits,
    InvalidAmount,
    Unauthorized,
)
from ..domain.service import AccountService
from ..security.passwords import MAX_SECRET_BYTES, CredentialVerifier
from ..security.tokens import issue_access_token, read_bearer_claims

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1")


class LoginRequest(BaseModel):
    """Credentials submitted to open a new session."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    """Bearer token for the session that just superseded all earlier ones."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: SessionUser


class RegisterRequest(BaseModel):
    """Payload accepted when an administrator registers an account."""

    email: EmailStr
    password: str = Field(..., min_length=6)
    is_admin: bool = False

    @field_validator("password")
    @classmethod
    def password_fits_hash(cls, value: str) -> str:
        if len(value.encode("utf-8")) > MAX_SECRET_BYTES:
            raise ValueError(f"password must be at most {MAX_SECRET_BYTES} bytes")
        return value


class RegisterResponse(BaseModel):
    message: str
    user: AccountSummary


class AddCreditsRequest(BaseModel):
    # amount validation is left to the ledger so callers see InvalidAmount
    target_user_id: str
    amount: int


def get_service(request: Request) -> AccountService:
    """Resolve the `AccountService` stored on the FastAPI application state."""
    service: AccountService = request.app.state.account_service
    return service


def get_verifier(request: Request) -> CredentialVerifier:
    verifier: CredentialVerifier = request.app.state.credential_verifier
    return verifier


def get_current_account(
    authorization: str | None = Header(default=None),
    service: AccountService = Depends(get_service),
) -> Account:
    """Authenticate the bearer token and reject sessions superseded by a newer login."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise _unauthorized("missing bearer token")
    try:
        claims = read_bearer_claims(authorization[7:].strip())
    except jwt.PyJWTError as exc:
        logger.debug("rejected bearer token: %s", exc)
        raise _unauthorized("invalid token") from exc
    try:
        return service.authenticate_request(claims.account_id, claims.session_token)
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc


def _summary(account: Account) -> AccountSummary:
    return AccountSummary(
        account_id=account.account_id,
        email=account.email,
        credits=account.credits,
        role=account.role.value,
        created_at=account.created_at,
    )


@router.post("/auth/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    service: AccountService = Depends(get_service),
) -> LoginResponse:
    """Authenticate and issue a bearer token; any earlier session stops working."""
    try:
        result = service.login(payload.email, payload.password)
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc
    token, expires_in = issue_access_token(
        subject=result.account_id,
        session_token=result.session_token,
        role=result.role.value,
    )
    return LoginResponse(
        access_token=token,
        expires_in=expires_in,
        user=SessionUser(id=result.account_id, email=result.email, role=result.role.value),
    )


@router.post("/users/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register_user(
    payload: RegisterRequest,
    current: Account = Depends(get_current_account),
    service: AccountService = Depends(get_service),
    verifier: CredentialVerifier = Depends(get_verifier),
) -> RegisterResponse:
    """Register a new account. Administrators only."""
    if not current.is_admin:
        raise _http_error_from_account_error(Unauthorized("ADMIN role required"))
    role = Role.ADMIN if payload.is_admin else Role.USER
    try:
        account = service.register(payload.email, verifier.hash(payload.password), role)
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc
    return RegisterResponse(message="User registered successfully", user=_summary(account))


@router.get("/users/me/credits", response_model=CreditBalance)
def get_my_credits(
    current: Account = Depends(get_current_account),
    service: AccountService = Depends(get_service),
) -> CreditBalance:
    """Return the caller's current balance."""
    try:
        account = service.get_account(current.account_id)
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc
    return CreditBalance(
        account_id=account.account_id,
        email=account.email,
        credits=account.credits,
        role=account.role.value,
    )


@router.post("/users/consume-credit", response_model=CreditConsumed)
def consume_credit(
    current: Account = Depends(get_current_account),
    service: AccountService = Depends(get_service),
) -> CreditConsumed:
    """Spend one credit from the caller's balance."""
    try:
        result = service.consume_credit(current.account_id)
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc
    return CreditConsumed(remaining_credits=result.remaining_credits, message=result.message)


@router.post("/users/add-credits", response_model=CreditsGranted)
def add_credits(
    payload: AddCreditsRequest,
    current: Account = Depends(get_current_account),
    service: AccountService = Depends(get_service),
) -> CreditsGranted:
    """Grant credits to another account. The service enforces the ADMIN role."""
    try:
        result = service.grant_credits(current.account_id, payload.target_user_id, payload.amount)
    except AccountError as exc:
        raise _http_error_from_account_error(exc) from exc
    return CreditsGranted(
        account_id=result.account_id,
        new_credit_balance=result.new_balance,
        message=result.message,
    )


_STATUS_BY_ERROR: tuple[tuple[type[AccountError], int], ...] = (
    (AccountNotFound, status.HTTP_404_NOT_FOUND),
    (AccountAlreadyExists, status.HTTP_409_CONFLICT),
    (InsufficientCredits, status.HTTP_402_PAYMENT_REQUIRED),
    (InvalidAmount, status.HTTP_400_BAD_REQUEST),
    (Conflict, status.HTTP_409_CONFLICT),
)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _http_error_from_account_error(exc: AccountError) -> HTTPException:
    if isinstance(exc, Unauthorized):
        return _unauthorized(str(exc))
    status_code = status.HTTP_400_BAD_REQUEST
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status_code = code
            break
    return HTTPException(status_code=status_code, detail=str(exc))
