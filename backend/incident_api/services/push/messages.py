"""
Provider-neutral push message types and the builders for each message kind.

A send never raises for provider errors; it returns a SendResult whose
status tells a permanently invalid token apart from every other failure.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from incident_shared.config.constants import PushMessageType, PushPriority, PushText


class SendStatus(str, Enum):
    DELIVERED = "delivered"
    INVALID_TOKEN = "invalid_token"
    FAILED = "failed"


@dataclass(frozen=True)
class SendResult:
    """Outcome of a single push send."""

    status: SendStatus
    message_id: str | None = None
    error: str | None = None
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.status is SendStatus.DELIVERED

    @classmethod
    def delivered(cls, message_id: str | None, duration_ms: int = 0) -> "SendResult":
        return cls(SendStatus.DELIVERED, message_id=message_id, duration_ms=duration_ms)

    @classmethod
    def invalid_token(cls, error: str, duration_ms: int = 0) -> "SendResult":
        return cls(SendStatus.INVALID_TOKEN, error=error, duration_ms=duration_ms)

    @classmethod
    def failed(cls, error: str, duration_ms: int = 0) -> "SendResult":
        return cls(SendStatus.FAILED, error=error, duration_ms=duration_ms)


@dataclass(frozen=True)
class PushMessage:
    """
    A push message before it is bound to a device token.

    title and body are None for data-only messages (probes). The Android
    fields are display hints; providers without an equivalent ignore them.
    """

    data: dict[str, str]
    title: str | None = None
    body: str | None = None
    priority: str = PushPriority.HIGH
    ttl_seconds: int = 15
    notification_priority: str | None = None
    direct_boot_ok: bool | None = None
    local_only: bool | None = None
    sticky: bool | None = None
    default_sound: bool = True
    default_vibrate_timings: bool = True

    @property
    def has_notification(self) -> bool:
        return self.title is not None or self.body is not None


@dataclass(frozen=True)
class ReportAlert:
    """Snapshot of a new report, taken after commit, used to build alerts."""

    report_id: int
    category: str
    address: str
    reporter_name: str
    is_sirine: bool
    created_at: datetime


@dataclass(frozen=True)
class DeviceTarget:
    """A registered device as seen by a broadcast."""

    admin_id: int
    push_token: str
    session_id: str | None = None


@dataclass
class DeviceOutcome:
    """Per-device result of a broadcast or a test delivery."""

    admin_id: int
    status: SendStatus
    duration_ms: int
    message_id: str | None = None
    error: str | None = None
    removed: bool = False

    @property
    def success(self) -> bool:
        return self.status is SendStatus.DELIVERED


@dataclass
class DispatchReport:
    """Aggregate of one fan-out. attempted == succeeded + failed."""

    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    duration_ms: int = 0
    outcomes: list[DeviceOutcome] = field(default_factory=list)

    @property
    def removed(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.removed)


def _epoch_ms(moment: datetime) -> str:
    # SQLite hands timestamps back naive; they were written as UTC
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return str(int(moment.timestamp() * 1000))


def alert_body(alert: ReportAlert) -> str:
    body = f"{alert.category} - {alert.address}\n{PushText.REPORTED_BY}: {alert.reporter_name}"
    if alert.is_sirine:
        body += f"\n{PushText.SIREN_ACTIVE}"
    return body


def build_alert_message(
    alert: ReportAlert,
    session_id: str | None,
    ttl_seconds: int,
    expiry_seconds: int,
) -> PushMessage:
    """
    New-report alert for one device.

    High priority with a short TTL; expires_at tells the device when to
    drop the alert if delivery is late.
    """
    now_ms = int(time.time() * 1000)
    return PushMessage(
        title=PushText.NEW_REPORT_TITLE,
        body=alert_body(alert),
        data={
            "report_id": str(alert.report_id),
            "type": PushMessageType.NEW_REPORT,
            "address": alert.address,
            "category": alert.category,
            "reporter_name": alert.reporter_name,
            "is_sirine": "1" if alert.is_sirine else "0",
            "timestamp": str(now_ms),
            "report_created_at": _epoch_ms(alert.created_at),
            "session_id": session_id or "unknown",
            "expires_at": str(now_ms + expiry_seconds * 1000),
        },
        priority=PushPriority.HIGH,
        ttl_seconds=ttl_seconds,
        notification_priority="high",
        direct_boot_ok=False,
        local_only=True,
        sticky=False,
    )


def build_probe_message(text: str, ttl_seconds: int, **extra: str) -> PushMessage:
    """Data-only, normal-priority token validation probe."""
    return PushMessage(
        data={"type": PushMessageType.TOKEN_VALIDATION, "message": text, **extra},
        priority=PushPriority.NORMAL,
        ttl_seconds=ttl_seconds,
    )


def build_test_message(text: str, admin_id: int, ttl_seconds: int) -> PushMessage:
    """Visible test notification, delivered even before the device unlocks."""
    now_ms = int(time.time() * 1000)
    return PushMessage(
        title=PushText.TEST_TITLE,
        body=text,
        data={
            "type": PushMessageType.TEST_NOTIFICATION,
            "timestamp": str(now_ms),
            "test_id": f"test_{now_ms}_{admin_id}",
        },
        priority=PushPriority.HIGH,
        ttl_seconds=ttl_seconds,
        notification_priority="max",
        direct_boot_ok=True,
        local_only=False,
        sticky=False,
    )
