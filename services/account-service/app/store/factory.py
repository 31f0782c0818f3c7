"""Build the configured account store backend."""

from __future__ import annotations

import logging
from typing import Callable

from ..config import Settings
from .base import AccountStore
from .memory import InMemoryAccountStore

logger = logging.getLogger(__name__)


def build_account_store(settings: Settings) -> tuple[AccountStore, Callable[[], None]]:
    """Return the store selected by ``settings`` and a callable releasing its resources."""
    backend = settings.account_store_backend

    if backend == "postgres":
        from psycopg_pool import ConnectionPool

        from .postgres import PostgresAccountStore

        pool = ConnectionPool(settings.database_url, open=False)
        pool.open()
        store = PostgresAccountStore(pool)
        store.ensure_schema()
        logger.info("account store configured for postgres backend")

        def close_pool() -> None:
            pool.close()

        return store, close_pool

    if backend == "redis":
        if not settings.redis_url:
            raise RuntimeError("REDIS_URL must be set for the redis account store")
        import redis

        from .redis_store import RedisAccountStore

        client = redis.from_url(settings.redis_url, decode_responses=True)
        # fail fast when the server is unreachable
        client.ping()
        logger.info("account store configured for redis backend at %s", settings.redis_url)
        return RedisAccountStore(client, key_prefix=settings.redis_key_prefix), client.close

    if backend != "memory":
        raise RuntimeError(f"unknown account store backend: {backend}")

    logger.info("account store using in-memory backend")
    return InMemoryAccountStore(), lambda: None
