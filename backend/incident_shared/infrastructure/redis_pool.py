"""
Redis Connection Pool Management.

Only the Redis-backed revocation store talks to Redis. Token verification
runs inside synchronous request dependencies, so a sync pool is used.
"""

from __future__ import annotations

import threading

import redis

from incident_shared.config.settings import settings, REDIS_URL
from incident_shared.config.logging import get_logger

logger = get_logger(__name__)


_redis_sync_pool: redis.ConnectionPool | None = None
_sync_pool_lock = threading.Lock()


def get_redis_sync_client() -> redis.Redis:
    """
    Get a sync Redis client backed by the shared connection pool.

    Thread-safe with double-check locking; the pool is created once per
    process and each call returns a lightweight client bound to it.
    """
    global _redis_sync_pool

    if _redis_sync_pool is None:
        with _sync_pool_lock:
            if _redis_sync_pool is None:
                _redis_sync_pool = redis.ConnectionPool.from_url(
                    REDIS_URL,
                    max_connections=settings.redis_sync_pool_max_connections,
                    decode_responses=True,
                    socket_connect_timeout=settings.redis_socket_timeout,
                    socket_timeout=settings.redis_socket_timeout,
                )
                logger.info(
                    "Redis sync pool initialized",
                    max_connections=settings.redis_sync_pool_max_connections,
                    timeout=settings.redis_socket_timeout,
                )

    return redis.Redis(connection_pool=_redis_sync_pool)


def close_redis_sync_pool() -> None:
    """Disconnect every pooled connection. Call on shutdown."""
    global _redis_sync_pool

    with _sync_pool_lock:
        if _redis_sync_pool is not None:
            _redis_sync_pool.disconnect()
            _redis_sync_pool = None
            logger.info("Redis sync pool closed")
