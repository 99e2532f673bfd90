"""
Administrator push-token router.

Registration probes the token before storing it. The validate endpoint
sweeps every stored token; the test endpoint sends a visible notification
to every registered device and reports per-device timing.
"""

import asyncio
import time

from fastapi import APIRouter, Depends

from incident_shared.config.logging import push_logger as logger
from incident_shared.security.auth import Principal, current_principal, require_admin
from incident_shared.utils.exceptions import NotFoundError
from incident_shared.utils.schemas import (
    PushTestRequest,
    PushTestResponse,
    PushTestResult,
    PushTokenRequest,
    PushTokenResponse,
    PushValidateResponse,
)
from incident_api.core.dependencies import AlertServices, get_services


router = APIRouter(prefix="/admin/push-token", tags=["admin-push"])


@router.post("", response_model=PushTokenResponse)
async def register_push_token(
    body: PushTokenRequest,
    principal: Principal = Depends(current_principal),
    services: AlertServices = Depends(get_services),
) -> PushTokenResponse:
    """Register the caller's device. Replaces any earlier device and session."""
    require_admin(principal, "register push tokens")

    session = await services.devices.register(principal.id, body.push_token)
    return PushTokenResponse(
        message="Push token registered successfully",
        session_id=session.session_id,
        session_start=session.session_start,
    )


@router.post("/validate", response_model=PushValidateResponse)
async def validate_push_tokens(
    principal: Principal = Depends(current_principal),
    services: AlertServices = Depends(get_services),
) -> PushValidateResponse:
    """Probe every stored token and remove the ones the provider rejects."""
    require_admin(principal, "validate push tokens")

    summary = await services.devices.validate_all()
    return PushValidateResponse(
        message="Push token validation completed",
        valid_tokens=summary.valid,
        invalid_tokens_removed=summary.invalid,
    )


@router.post("/test", response_model=PushTestResponse)
async def test_push_delivery(
    body: PushTestRequest | None = None,
    principal: Principal = Depends(current_principal),
    services: AlertServices = Depends(get_services),
) -> PushTestResponse:
    """Send a test notification to every registered device. Registrations are left as they are."""
    require_admin(principal, "test push tokens")

    if not await asyncio.to_thread(services.devices.snapshot):
        raise NotFoundError("Registered push token")

    start = time.perf_counter()
    text = body.test_message if body else PushTestRequest().test_message
    report = await services.dispatcher.send_test(text)
    total_ms = int((time.perf_counter() - start) * 1000)

    logger.info(
        "Push test completed",
        admin_id=principal.id,
        successful=report.succeeded,
        total=report.attempted,
        duration_ms=total_ms,
    )
    return PushTestResponse(
        message="Push test completed",
        total_duration_ms=total_ms,
        successful_sends=report.succeeded,
        total_tokens=report.attempted,
        results=[
            PushTestResult(
                admin_id=outcome.admin_id,
                success=outcome.success,
                status=outcome.status.value,
                duration_ms=outcome.duration_ms,
                message_id=outcome.message_id,
                error=outcome.error,
            )
            for outcome in report.outcomes
        ],
    )
