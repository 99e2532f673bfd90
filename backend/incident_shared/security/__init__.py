"""
Security module: Authentication, token revocation, password hashing, rate limiting.
"""

from incident_shared.security.auth import (
    AuthGate,
    Principal,
    BearerContext,
    build_auth_gate,
    get_auth_gate,
    configure_auth_gate,
    get_bearer_token,
    current_bearer,
    current_principal,
    require_admin,
)
from incident_shared.security.revocation import (
    RevocationStore,
    InMemoryRevocationStore,
    RedisRevocationStore,
    build_revocation_store,
)
from incident_shared.security.password import hash_password, verify_password
from incident_shared.security.rate_limit import limiter, rate_limit_exceeded_handler

__all__ = [
    # auth
    "AuthGate",
    "Principal",
    "BearerContext",
    "build_auth_gate",
    "get_auth_gate",
    "configure_auth_gate",
    "get_bearer_token",
    "current_bearer",
    "current_principal",
    "require_admin",
    # revocation
    "RevocationStore",
    "InMemoryRevocationStore",
    "RedisRevocationStore",
    "build_revocation_store",
    # password
    "hash_password",
    "verify_password",
    # rate_limit
    "limiter",
    "rate_limit_exceeded_handler",
]
