"""Redis-backed account store.

Each account lives in a hash keyed by id; a plain string key maps the email to
the id. Inserts and conditional updates run as Lua scripts so the uniqueness
check and the compare-and-swap happen inside a single Redis command. Servers
without scripting fall back to ``WATCH``/``MULTI`` transactions.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Final, Mapping

from redis import Redis
from redis.exceptions import ResponseError, WatchError

from ..domain.account import Account, Role
from ..domain.contracts import AccountMutation
from ..domain.errors import AccountAlreadyExists, AccountNotFound
from .base import VersionConflict

logger = logging.getLogger(__name__)

_INSERT_RETRIES = 3


class RedisAccountStore:
    """Distributed account store implemented with Redis hashes."""

    _INSERT_SCRIPT: Final[str] = """
    if redis.call('EXISTS', KEYS[2]) == 1 or redis.call('EXISTS', KEYS[1]) == 1 then
        return 0
    end
    redis.call('SET', KEYS[2], ARGV[1])
    redis.call('HSET', KEYS[1],
        'account_id', ARGV[1],
        'email', ARGV[2],
        'credential_hash', ARGV[3],
        'role', ARGV[4],
        'credits', ARGV[5],
        'active_session_token', ARGV[6],
        'created_at', ARGV[7],
        'updated_at', ARGV[8],
        'version', ARGV[9])
    return 1
    """

    _UPDATE_SCRIPT: Final[str] = """
    local current = redis.call('HGET', KEYS[1], 'version')
    if not current then
        return -1
    end
    if tonumber(current) ~= tonumber(ARGV[1]) then
        return 0
    end
    redis.call('HSET', KEYS[1],
        'credits', ARGV[2],
        'active_session_token', ARGV[3],
        'updated_at', ARGV[4],
        'version', tostring(tonumber(current) + 1))
    return redis.call('HGETALL', KEYS[1])
    """

    def __init__(self, client: Redis, *, key_prefix: str = "accounts") -> None:
        """Register the Lua scripts against ``client``."""
        self._client = client
        self._key_prefix = key_prefix
        self._insert_script = client.register_script(self._INSERT_SCRIPT)
        self._update_script = client.register_script(self._UPDATE_SCRIPT)

    def insert(self, account: Account) -> Account:
        account_key = self._account_key(account.account_id)
        email_key = self._email_key(account.email)
        fields = self._serialise(account)
        args = [fields[name] for name in _FIELD_ORDER]
        try:
            result = self._insert_script(keys=[account_key, email_key], args=args)
        except ResponseError as exc:
            if not _scripting_unavailable(exc):
                raise
            return self._insert_fallback(account, account_key, email_key, fields)
        if int(result) != 1:
            raise AccountAlreadyExists()
        return account

    def find_by_id(self, account_id: str) -> Account | None:
        fields = self._client.hgetall(self._account_key(account_id))
        if not fields:
            return None
        return self._deserialise(fields)

    def find_by_email(self, email: str) -> Account | None:
        account_id = self._client.get(self._email_key(email))
        if account_id is None:
            return None
        return self.find_by_id(_text(account_id))

    def conditional_update(
        self, account_id: str, expected_version: int, mutation: AccountMutation
    ) -> Account:
        key = self._account_key(account_id)
        args = [
            expected_version,
            mutation.credits,
            mutation.active_session_token or "",
            mutation.updated_at.isoformat(),
        ]
        try:
            result = self._update_script(keys=[key], args=args)
        except ResponseError as exc:
            if not _scripting_unavailable(exc):
                raise
            return self._update_fallback(account_id, expected_version, mutation)
        if isinstance(result, list):
            return self._deserialise(_pairs_to_mapping(result))
        if int(result) == -1:
            raise AccountNotFound()
        raise VersionConflict(account_id, expected_version)

    def _insert_fallback(
        self, account: Account, account_key: str, email_key: str, fields: dict[str, str]
    ) -> Account:
        """Unique insert using optimistic ``WATCH`` transactions."""
        for _ in range(_INSERT_RETRIES):
            with self._client.pipeline() as pipe:
                try:
                    pipe.watch(email_key, account_key)
                    if pipe.exists(email_key) or pipe.exists(account_key):
                        raise AccountAlreadyExists()
                    pipe.multi()
                    pipe.set(email_key, account.account_id)
                    pipe.hset(account_key, mapping=fields)
                    pipe.execute()
                    return account
                except WatchError:
                    logger.debug("email key %s changed during insert, re-checking", email_key)
        raise AccountAlreadyExists()

    def _update_fallback(
        self, account_id: str, expected_version: int, mutation: AccountMutation
    ) -> Account:
        """Compare-and-swap using ``WATCH`` when Lua is unavailable."""
        key = self._account_key(account_id)
        with self._client.pipeline() as pipe:
            try:
                pipe.watch(key)
                current = pipe.hget(key, "version")
                if current is None:
                    raise AccountNotFound()
                if int(current) != expected_version:
                    raise VersionConflict(account_id, expected_version)
                pipe.multi()
                pipe.hset(
                    key,
                    mapping={
                        "credits": str(mutation.credits),
                        "active_session_token": mutation.active_session_token or "",
                        "updated_at": mutation.updated_at.isoformat(),
                        "version": str(int(current) + 1),
                    },
                )
                pipe.hgetall(key)
                _, fields = pipe.execute()
            except WatchError as exc:
                raise VersionConflict(account_id, expected_version) from exc
        return self._deserialise(fields)

    def _account_key(self, account_id: str) -> str:
        return f"{self._key_prefix}:account:{account_id}"

    def _email_key(self, email: str) -> str:
        return f"{self._key_prefix}:email:{email}"

    @staticmethod
    def _serialise(account: Account) -> dict[str, str]:
        return {
            "account_id": account.account_id,
            "email": account.email,
            "credential_hash": account.credential_hash,
            "role": account.role.value,
            "credits": str(account.credits),
            "active_session_token": account.active_session_token or "",
            "created_at": account.created_at.isoformat(),
            "updated_at": account.updated_at.isoformat(),
            "version": str(account.version),
        }

    @staticmethod
    def _deserialise(raw: Mapping[Any, Any]) -> Account:
        fields = {_text(key): _text(value) for key, value in raw.items()}
        return Account(
            account_id=fields["account_id"],
            email=fields["email"],
            credential_hash=fields["credential_hash"],
            role=Role(fields["role"]),
            credits=int(fields["credits"]),
            active_session_token=fields["active_session_token"] or None,
            created_at=datetime.fromisoformat(fields["created_at"]),
            updated_at=datetime.fromisoformat(fields["updated_at"]),
            version=int(fields["version"]),
        )


_FIELD_ORDER: Final[tuple[str, ...]] = (
    "account_id",
    "email",
    "credential_hash",
    "role",
    "credits",
    "active_session_token",
    "created_at",
    "updated_at",
    "version",
)


def _scripting_unavailable(exc: ResponseError) -> bool:
    message = str(exc).lower()
    return "unknown command `evalsha`" in message or "unknown command `eval`" in message


def _text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def _pairs_to_mapping(values: list[Any]) -> dict[Any, Any]:
    return dict(zip(values[0::2], values[1::2]))
