"""
Token revocation stores.

A revoked bearer token must fail verification from then on, regardless of
its signature. Callers only see the ``RevocationStore`` protocol, so the
backing store can change without touching them:

- ``InMemoryRevocationStore`` (default): process-local set. Entries never
  expire and are lost on restart, after which revoked tokens verify again.
  This is an accepted limitation of the default backend.
- ``RedisRevocationStore``: shared across processes, survives restarts.
  Entries expire with the token when the token carries an ``exp`` claim.
"""

from __future__ import annotations

import hashlib
import threading
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from incident_shared.config.logging import get_logger, hash_token

logger = get_logger(__name__)

REVOKED_TOKEN_PREFIX = "incident:auth:revoked:"


@runtime_checkable
class RevocationStore(Protocol):
    """Minimal contract of a revocation set."""

    def add(self, token: str, expires_at: datetime | None = None) -> bool:
        """Record ``token`` as revoked. Idempotent. Returns True when stored."""
        ...

    def contains(self, token: str) -> bool:
        """True when ``token`` has been revoked."""
        ...


class InMemoryRevocationStore:
    """
    Process-wide set of revoked token strings.

    Guarded by its own lock: request handlers run in a thread pool, and a
    single store-scoped lock keeps logouts from serializing unrelated work.
    """

    def __init__(self) -> None:
        self._tokens: set[str] = set()
        self._lock = threading.Lock()

    def add(self, token: str, expires_at: datetime | None = None) -> bool:
        with self._lock:
            self._tokens.add(token)
        logger.info("Token revoked", token_hash=hash_token(token), backend="memory")
        return True

    def contains(self, token: str) -> bool:
        with self._lock:
            return token in self._tokens

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)


class RedisRevocationStore:
    """
    Revocation set kept in Redis.

    Keys are a SHA256 digest of the token so raw credentials never reach
    Redis. Lookups fail closed: if Redis cannot be reached the token is
    treated as revoked.
    """

    def __init__(self, client_factory) -> None:
        """
        Args:
            client_factory: Zero-argument callable returning a sync Redis client.
        """
        self._client_factory = client_factory

    @staticmethod
    def _key(token: str) -> str:
        return REVOKED_TOKEN_PREFIX + hashlib.sha256(token.encode()).hexdigest()

    def add(self, token: str, expires_at: datetime | None = None) -> bool:
        try:
            client = self._client_factory()
            key = self._key(token)

            if expires_at is None:
                client.set(key, "1")
                ttl_seconds = None
            else:
                ttl_seconds = int((expires_at - datetime.now(timezone.utc)).total_seconds())
                if ttl_seconds <= 0:
                    logger.debug("Token already expired, skipping revocation", token_hash=hash_token(token))
                    return True
                client.setex(key, ttl_seconds, "1")

            logger.info("Token revoked", token_hash=hash_token(token), ttl_seconds=ttl_seconds, backend="redis")
            return True

        except Exception as e:
            logger.error("Failed to revoke token", token_hash=hash_token(token), error=str(e))
            return False

    def contains(self, token: str) -> bool:
        try:
            client = self._client_factory()
            return client.exists(self._key(token)) > 0
        except Exception as e:
            logger.error(
                "Failed to check revocation - failing closed",
                token_hash=hash_token(token),
                error=str(e),
            )
            return True


def build_revocation_store(backend: str) -> RevocationStore:
    """Create the store named by the ``revocation_backend`` setting."""
    if backend == "redis":
        from incident_shared.infrastructure.redis_pool import get_redis_sync_client

        return RedisRevocationStore(get_redis_sync_client)
    if backend == "memory":
        return InMemoryRevocationStore()
    raise ValueError(f"Unknown revocation backend: {backend}")
