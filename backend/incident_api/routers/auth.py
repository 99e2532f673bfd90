"""
Authentication router.
Handles login, logout and the caller's profile.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from incident_shared.config.logging import audit_auth_event, auth_logger as logger
from incident_shared.config.settings import settings
from incident_shared.infrastructure.db import get_db
from incident_shared.security.auth import (
    AuthGate,
    BearerContext,
    Principal,
    current_bearer,
    current_principal,
    get_auth_gate,
)
from incident_shared.security.password import verify_password
from incident_shared.security.rate_limit import limiter
from incident_shared.utils.exceptions import AuthError, ValidationError
from incident_shared.utils.schemas import LoginRequest, LoginResponse, LogoutResponse, ProfileOutput
from incident_api.core.dependencies import get_report_queries
from incident_api.models import Admin, User
from incident_api.services.domain import ReportQueryService


router = APIRouter(tags=["auth"])

# Same message for unknown username and wrong password
INVALID_CREDENTIALS = "Invalid username or password"


@router.post("/login", response_model=LoginResponse)
@limiter.limit(settings.login_rate_limit)
def login(
    request: Request,
    body: LoginRequest,
    db: Session = Depends(get_db),
    gate: AuthGate = Depends(get_auth_gate),
) -> LoginResponse:
    """
    Authenticate a citizen or an administrator and issue a bearer token.

    Citizens are looked up first; a username not found among them is
    tried against administrators.
    """
    if not body.username or not body.password:
        raise ValidationError("username and password required")

    client_ip = request.client.host if request.client else None

    user = db.scalar(select(User).where(User.username == body.username))
    if user is not None:
        if not verify_password(body.password, user.password):
            audit_auth_event("LOGIN", username=body.username, success=False, reason="bad_password", ip_address=client_ip)
            raise AuthError(INVALID_CREDENTIALS)

        principal = Principal(id=user.id, is_admin=False, display_name=user.name)
        audit_auth_event("LOGIN", user_id=user.id, username=user.username, ip_address=client_ip, is_admin=False)
        return LoginResponse(
            token=gate.issue(principal),
            id=user.id,
            name=user.name,
            username=user.username,
            is_admin=False,
            role=None,
        )

    admin = db.scalar(select(Admin).where(Admin.username == body.username))
    if admin is None:
        audit_auth_event("LOGIN", username=body.username, success=False, reason="unknown_user", ip_address=client_ip)
        raise AuthError(INVALID_CREDENTIALS)

    if not verify_password(body.password, admin.password):
        audit_auth_event("LOGIN", username=body.username, success=False, reason="bad_password", ip_address=client_ip)
        raise AuthError(INVALID_CREDENTIALS)

    principal = Principal(id=admin.id, is_admin=True, role=admin.role, display_name=admin.name)
    audit_auth_event("LOGIN", user_id=admin.id, username=admin.username, ip_address=client_ip, is_admin=True, role=admin.role)
    return LoginResponse(
        token=gate.issue(principal),
        id=admin.id,
        name=admin.name,
        username=admin.username,
        is_admin=True,
        role=admin.role,
    )


@router.post("/logout", response_model=LogoutResponse)
def logout(
    bearer: BearerContext = Depends(current_bearer),
    gate: AuthGate = Depends(get_auth_gate),
) -> LogoutResponse:
    """
    Revoke the presented token. An administrator's device registration
    is dropped as well, so their device stops receiving alerts.
    """
    principal = gate.revoke(bearer.token)
    audit_auth_event("LOGOUT", user_id=principal.id, is_admin=principal.is_admin)
    logger.info("User logged out", user_id=principal.id, is_admin=principal.is_admin)
    return LogoutResponse(success=True, message="Logged out successfully")


@router.get("/profile", response_model=ProfileOutput)
def profile(
    principal: Principal = Depends(current_principal),
    queries: ReportQueryService = Depends(get_report_queries),
) -> ProfileOutput:
    return queries.profile(principal)
