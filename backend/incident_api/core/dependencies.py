"""
Service container and FastAPI dependencies.

The alerting components are process-wide: the revocation store, the
listener hub and the background task group must be shared by every
request. They are built once (by the lifespan, or lazily on first use)
and can be replaced wholesale with ``configure_services``.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from fastapi import Depends
from sqlalchemy.orm import Session, sessionmaker

from incident_shared.config.logging import get_logger
from incident_shared.config.settings import settings
from incident_shared.infrastructure.db import SessionLocal, get_db
from incident_shared.infrastructure.tasks import BackgroundTaskGroup
from incident_shared.security.auth import AuthGate, Principal, build_auth_gate, configure_auth_gate
from incident_api.models import utcnow
from incident_api.services.domain import ReportIngestor, ReportQueryService
from incident_api.services.events import EventBroadcaster, LiveListenerHub
from incident_api.services.push import PushDispatcher, PushSender, build_push_sender
from incident_api.services.registry import DeviceRegistry, SessionRegistry

logger = get_logger(__name__)


@dataclass
class AlertServices:
    auth_gate: AuthGate
    sender: PushSender
    sessions: SessionRegistry
    devices: DeviceRegistry
    hub: LiveListenerHub
    broadcaster: EventBroadcaster
    dispatcher: PushDispatcher
    tasks: BackgroundTaskGroup


def build_services(
    session_factory: sessionmaker = SessionLocal,
    sender: PushSender | None = None,
    auth_gate: AuthGate | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> AlertServices:
    """
    Wire the alerting components from settings.

    Logging out an administrator drops their device registration.
    """
    if sender is None:
        sender = build_push_sender(settings.firebase_credentials_path, settings.push_send_workers)
    if auth_gate is None:
        auth_gate = build_auth_gate()

    sessions = SessionRegistry(session_factory, clock=clock)
    devices = DeviceRegistry(
        session_factory,
        sender,
        sessions,
        probe_ttl_seconds=settings.push_probe_ttl_seconds,
        hygiene_ttl_seconds=settings.push_hygiene_ttl_seconds,
    )
    hub = LiveListenerHub()
    dispatcher = PushDispatcher(
        devices,
        sender,
        max_concurrency=settings.push_max_concurrency,
        alert_ttl_seconds=settings.push_alert_ttl_seconds,
        alert_expiry_seconds=settings.push_alert_expiry_seconds,
        test_ttl_seconds=settings.push_test_ttl_seconds,
    )

    def drop_device(principal: Principal) -> None:
        devices.remove(principal.id)

    auth_gate.add_logout_hook(drop_device)

    return AlertServices(
        auth_gate=auth_gate,
        sender=sender,
        sessions=sessions,
        devices=devices,
        hub=hub,
        broadcaster=EventBroadcaster(hub),
        dispatcher=dispatcher,
        tasks=BackgroundTaskGroup(),
    )


_services: AlertServices | None = None
_services_lock = threading.Lock()


def configure_services(services: AlertServices | None) -> None:
    """Install (or with None, reset) the process-wide services and their AuthGate."""
    global _services
    with _services_lock:
        _services = services
        configure_auth_gate(services.auth_gate if services else None)


def get_services() -> AlertServices:
    """
    Get the process-wide services, building them from settings on first use.

    Thread-safe with double-check locking.
    """
    global _services
    if _services is None:
        with _services_lock:
            if _services is None:
                _services = build_services()
                configure_auth_gate(_services.auth_gate)
                logger.info("Alert services initialized")
    return _services


# =============================================================================
# FastAPI dependencies
# =============================================================================


def get_ingestor(
    db: Session = Depends(get_db),
    services: AlertServices = Depends(get_services),
) -> ReportIngestor:
    return ReportIngestor(db, services.broadcaster, services.dispatcher, services.tasks)


def get_report_queries(db: Session = Depends(get_db)) -> ReportQueryService:
    return ReportQueryService(db)
