"""
Authentication and authorization utilities.

AuthGate issues, verifies and revokes HS256 bearer tokens. Tokens are not
stored: a token is live until it appears in the revocation store (or, when
expiry is configured, until its ``exp`` passes).
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import jwt
from fastapi import Depends, Header

from incident_shared.config.settings import settings
from incident_shared.config.logging import get_logger, hash_token
from incident_shared.security.revocation import RevocationStore, build_revocation_store
from incident_shared.utils.exceptions import AuthError, AuthorizationError

logger = get_logger(__name__)

ALGORITHM = "HS256"


@dataclass(frozen=True)
class Principal:
    """
    Authenticated identity for the lifetime of one request.

    ``display_name`` is not carried in the token; it is filled in when the
    principal is loaded from the database (login, report creation).
    """

    id: int
    is_admin: bool
    role: Optional[str] = None
    display_name: Optional[str] = None


@dataclass(frozen=True)
class BearerContext:
    """A verified bearer token and the principal it encodes."""

    token: str
    principal: Principal


LogoutHook = Callable[[Principal], Any]


class AuthGate:
    """
    Issues, verifies and revokes bearer tokens.

    Usage:
        gate = AuthGate(InMemoryRevocationStore(), secret="...")
        token = gate.issue(Principal(id=1, is_admin=True, role="superadmin"))
        principal = gate.verify(token)
        gate.revoke(token)   # verify(token) now raises AuthError
    """

    def __init__(
        self,
        revocations: RevocationStore,
        secret: str,
        issuer: str = "incident-alerts",
        audience: str = "incident-alerts-clients",
        expire_minutes: int | None = None,
    ) -> None:
        self._revocations = revocations
        self._secret = secret
        self._issuer = issuer
        self._audience = audience
        self._expire_minutes = expire_minutes
        self._logout_hooks: list[LogoutHook] = []

    @property
    def revocations(self) -> RevocationStore:
        return self._revocations

    def add_logout_hook(self, hook: LogoutHook) -> None:
        """
        Register a callable run with the principal when an administrator's
        token is revoked. Used to drop the admin's push registration.
        """
        self._logout_hooks.append(hook)

    def issue(self, principal: Principal) -> str:
        """
        Encode the principal's identity and role claims.

        Without expiry configured the result is a pure function of the
        principal: no timestamps, no random token ID.
        """
        claims: dict[str, Any] = {
            "sub": str(principal.id),
            "is_admin": principal.is_admin,
            "role": principal.role,
            "iss": self._issuer,
            "aud": self._audience,
        }
        if self._expire_minutes:
            now = int(time.time())
            claims["iat"] = now
            claims["exp"] = now + self._expire_minutes * 60

        token = jwt.encode(claims, self._secret, algorithm=ALGORITHM)
        logger.debug("Token issued", user_id=principal.id, is_admin=principal.is_admin)
        return token

    def verify(self, token: str) -> Principal:
        """
        Decode a live token.

        Raises:
            AuthError: If the token is revoked, malformed, badly signed or expired.
        """
        if self._revocations.contains(token):
            raise AuthError("Token revoked", token_hash=hash_token(token))

        claims = self._decode(token)
        return self._principal_from_claims(claims)

    def revoke(self, token: str) -> Principal:
        """
        Add ``token`` to the revocation store.

        Idempotent. The token must carry a valid signature. When the token
        belongs to an administrator every logout hook runs, which clears
        that administrator's push delivery.

        Returns:
            The principal the token encoded.
        """
        claims = self._decode(token)
        principal = self._principal_from_claims(claims)

        expires_at = None
        if "exp" in claims:
            expires_at = datetime.fromtimestamp(claims["exp"], tz=timezone.utc)

        if not self._revocations.add(token, expires_at=expires_at):
            logger.warning("Revocation store did not confirm token revocation", user_id=principal.id)

        if principal.is_admin:
            for hook in self._logout_hooks:
                try:
                    hook(principal)
                except Exception as e:
                    logger.error(
                        "Logout hook failed",
                        user_id=principal.id,
                        hook=getattr(hook, "__name__", repr(hook)),
                        error=str(e),
                    )

        logger.info("Token revoked for principal", user_id=principal.id, is_admin=principal.is_admin)
        return principal

    def _decode(self, token: str) -> dict[str, Any]:
        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                audience=self._audience,
                issuer=self._issuer,
                options={"require": ["sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise AuthError("Token has expired")
        except jwt.InvalidTokenError as e:
            # Log the actual error, return a generic message to the client
            logger.warning("JWT validation failed", error=str(e))
            raise AuthError("Invalid token")

    @staticmethod
    def _principal_from_claims(claims: dict[str, Any]) -> Principal:
        try:
            principal_id = int(claims["sub"])
        except (KeyError, ValueError, TypeError):
            raise AuthError("Invalid token: malformed subject claim")

        is_admin = claims.get("is_admin")
        if not isinstance(is_admin, bool):
            raise AuthError("Invalid token: malformed is_admin claim")

        role = claims.get("role")
        if role is not None and not isinstance(role, str):
            raise AuthError("Invalid token: malformed role claim")

        return Principal(id=principal_id, is_admin=is_admin, role=role)


# =============================================================================
# Process-wide gate
# =============================================================================

_auth_gate: AuthGate | None = None
_gate_lock = threading.Lock()


def build_auth_gate(revocations: RevocationStore | None = None) -> AuthGate:
    """Create an AuthGate from settings."""
    if revocations is None:
        revocations = build_revocation_store(settings.revocation_backend)
    return AuthGate(
        revocations,
        secret=settings.jwt_secret,
        issuer=settings.jwt_issuer,
        audience=settings.jwt_audience,
        expire_minutes=settings.jwt_expire_minutes,
    )


def get_auth_gate() -> AuthGate:
    """
    Get the process-wide AuthGate (FastAPI dependency).

    Thread-safe with double-check locking.
    """
    global _auth_gate
    if _auth_gate is None:
        with _gate_lock:
            if _auth_gate is None:
                _auth_gate = build_auth_gate()
    return _auth_gate


def configure_auth_gate(gate: AuthGate | None) -> None:
    """Install (or with None, reset) the process-wide AuthGate."""
    global _auth_gate
    with _gate_lock:
        _auth_gate = gate


# =============================================================================
# FastAPI dependencies
# =============================================================================


def get_bearer_token(authorization: str | None) -> str:
    """
    Extract bearer token from Authorization header.

    Raises:
        AuthError: If header is missing or malformed.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthError("Unauthorized")
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise AuthError("Unauthorized")
    return token


def current_bearer(
    authorization: str | None = Header(default=None, alias="Authorization"),
    gate: AuthGate = Depends(get_auth_gate),
) -> BearerContext:
    """
    FastAPI dependency returning the verified token and its principal.

    Use this where the raw token is needed (logout); otherwise use
    ``current_principal``.
    """
    token = get_bearer_token(authorization)
    return BearerContext(token=token, principal=gate.verify(token))


def current_principal(bearer: BearerContext = Depends(current_bearer)) -> Principal:
    """
    FastAPI dependency to get the authenticated principal.

    Usage:
        @router.get("/profile")
        def profile(principal: Principal = Depends(current_principal)):
            ...
    """
    return bearer.principal


def require_admin(principal: Principal, action: str) -> None:
    """
    Verify that the principal is an administrator.

    Raises:
        AuthorizationError: If the principal is not an administrator.
    """
    if not principal.is_admin:
        raise AuthorizationError(action, user_id=principal.id)
