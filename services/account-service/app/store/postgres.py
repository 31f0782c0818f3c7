"""Postgres-backed account store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from psycopg.errors import UniqueViolation
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool

from ..domain.account import Account, Role
from ..domain.contracts import AccountMutation
from ..domain.errors import AccountAlreadyExists, AccountNotFound
from .base import VersionConflict

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS accounts (
    account_id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    credential_hash TEXT NOT NULL,
    role TEXT NOT NULL CHECK (role IN ('USER', 'ADMIN')),
    credits INTEGER NOT NULL CHECK (credits >= 0),
    active_session_token TEXT,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL,
    version BIGINT NOT NULL DEFAULT 0
)
"""

_COLUMNS = (
    "account_id, email, credential_hash, role, credits, "
    "active_session_token, created_at, updated_at, version"
)


@dataclass(slots=True)
class AccountRecord:
    """Row projection used when mapping database tuples to domain aggregates."""

    account_id: str
    email: str
    credential_hash: str
    role: str
    credits: int
    active_session_token: str | None
    created_at: datetime
    updated_at: datetime
    version: int

    def to_domain(self) -> Account:
        return Account(
            account_id=self.account_id,
            email=self.email,
            credential_hash=self.credential_hash,
            role=Role(self.role),
            credits=self.credits,
            active_session_token=self.active_session_token,
            created_at=self.created_at,
            updated_at=self.updated_at,
            version=self.version,
        )


class PostgresAccountStore:
    """Account persistence with a unique email constraint and versioned updates."""

    def __init__(self, pool: ConnectionPool) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool

    def ensure_schema(self) -> None:
        """Create the ``accounts`` table when it does not exist yet."""
        with self._pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(SCHEMA_SQL)
            conn.commit()

    def insert(self, account: Account) -> Account:
        """Insert a new account relying on the ``UNIQUE(email)`` constraint."""
        try:
            with self._pool.connection() as conn:
                with conn.cursor(row_factory=tuple_row) as cur:
                    cur.execute(
                        f"""
                        INSERT INTO accounts ({_COLUMNS})
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                        RETURNING {_COLUMNS}
                        """,
                        (
                            account.account_id,
                            account.email,
                            account.credential_hash,
                            account.role.value,
                            account.credits,
                            account.active_session_token,
                            account.created_at,
                            account.updated_at,
                            account.version,
                        ),
                    )
                    row = cur.fetchone()
                conn.commit()
        except UniqueViolation as exc:
            raise AccountAlreadyExists() from exc
        return self._map_record(row)

    def find_by_id(self, account_id: str) -> Account | None:
        return self._find_one("account_id", account_id)

    def find_by_email(self, email: str) -> Account | None:
        return self._find_one("email", email)

    def conditional_update(
        self, account_id: str, expected_version: int, mutation: AccountMutation
    ) -> Account:
        """Write ``mutation`` only if the row still carries ``expected_version``."""
        exists = True
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(
                    f"""
                    UPDATE accounts
                    SET credits = %s,
                        active_session_token = %s,
                        updated_at = %s,
                        version = version + 1
                    WHERE account_id = %s AND version = %s
                    RETURNING {_COLUMNS}
                    """,
                    (
                        mutation.credits,
                        mutation.active_session_token,
                        mutation.updated_at,
                        account_id,
                        expected_version,
                    ),
                )
                row = cur.fetchone()
                if row is None:
                    cur.execute("SELECT 1 FROM accounts WHERE account_id = %s", (account_id,))
                    exists = cur.fetchone() is not None
            conn.commit()

        if row is not None:
            return self._map_record(row)
        if not exists:
            raise AccountNotFound()
        logger.debug("stale version %s for account %s", expected_version, account_id)
        raise VersionConflict(account_id, expected_version)

    def _find_one(self, column: str, value: str) -> Account | None:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(f"SELECT {_COLUMNS} FROM accounts WHERE {column} = %s", (value,))
                row = cur.fetchone()
                if not row:
                    return None
        return self._map_record(row)

    def _map_record(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return AccountRecord(*row).to_domain()
