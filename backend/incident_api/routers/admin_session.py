"""
Administrator push-session router.
"""

from datetime import timedelta

from fastapi import APIRouter, Depends

from incident_shared.config.settings import settings
from incident_shared.security.auth import Principal, current_principal, require_admin
from incident_shared.utils.schemas import (
    SessionClearResponse,
    SessionValidateRequest,
    SessionValidateResponse,
)
from incident_api.core.dependencies import AlertServices, get_services


router = APIRouter(prefix="/admin/session", tags=["admin-session"])


@router.post("/validate", response_model=SessionValidateResponse)
def validate_session(
    body: SessionValidateRequest,
    principal: Principal = Depends(current_principal),
    services: AlertServices = Depends(get_services),
) -> SessionValidateResponse:
    """Compare the supplied session id with the caller's current session."""
    require_admin(principal, "validate sessions")

    current = services.sessions.current(principal.id)
    valid = services.sessions.validate(principal.id, body.session_id)
    return SessionValidateResponse(
        valid=valid,
        current_session=current.session_id if current else None,
        session_start=current.session_start if current else None,
        message="Session is valid" if valid else "Session is invalid or expired",
    )


@router.post("/clear", response_model=SessionClearResponse)
def clear_sessions(
    principal: Principal = Depends(current_principal),
    services: AlertServices = Depends(get_services),
) -> SessionClearResponse:
    """Clear every administrator session older than the configured TTL."""
    require_admin(principal, "clear sessions")

    cleared = services.sessions.sweep(timedelta(seconds=settings.session_ttl_seconds))
    return SessionClearResponse(message="Old sessions cleared", affected_rows=cleared)
