"""FastAPI application wiring for the account service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .api.routes import router as v1_router
from .config import get_settings
from .domain.service import AccountService
from .security.passwords import BcryptCredentialVerifier
from .store.factory import build_account_store

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialise the account store and service for the app lifecycle."""
    store, close_store = build_account_store(settings)
    verifier = BcryptCredentialVerifier(rounds=settings.bcrypt_rounds)
    app.state.credential_verifier = verifier
    app.state.account_service = AccountService(
        store,
        verifier,
        initial_user_credits=settings.initial_user_credits,
        max_attempts=settings.optimistic_max_attempts,
        backoff_ms=settings.optimistic_backoff_ms,
    )
    try:
        yield
    finally:
        close_store()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

# CORS for local frontend dev
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600,
)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


@app.get("/metrics")
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(v1_router)
