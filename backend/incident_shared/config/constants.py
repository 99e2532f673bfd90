"""
Centralized constants for the backend application.
Avoid magic strings and repeated constants.

Usage:
    from incident_shared.config.constants import ReportStatus, Topics

    if status not in ReportStatus.ALL:
        ...

    await broadcaster.publish(Topics.NEW_REPORT, payload)
"""

from typing import Final


# =============================================================================
# Principals
# =============================================================================


class ReporterType:
    """Who filed a report."""

    USER: Final[str] = "user"
    ADMIN: Final[str] = "admin"

    ALL: Final[tuple[str, ...]] = (USER, ADMIN)


# =============================================================================
# Report Status
# =============================================================================


class ReportStatus:
    """
    Report status constants.

    Transitions are unconstrained: an administrator may move a report
    from any of these values to any other.
    """

    PENDING: Final[str] = "pending"
    PROCESSING: Final[str] = "processing"
    COMPLETED: Final[str] = "completed"
    REJECTED: Final[str] = "rejected"

    ALL: Final[tuple[str, ...]] = (PENDING, PROCESSING, COMPLETED, REJECTED)


# =============================================================================
# Live-listener topics
# =============================================================================


class Topics:
    """Topics published to live listeners."""

    NEW_REPORT: Final[str] = "new_report"
    REPORT_STATUS_UPDATE: Final[str] = "report_status_update"


# =============================================================================
# Push messages
# =============================================================================


class PushMessageType:
    """Value of the ``type`` field carried in every push data payload."""

    NEW_REPORT: Final[str] = "new_report"
    TOKEN_VALIDATION: Final[str] = "token_validation"
    TEST_NOTIFICATION: Final[str] = "test_notification"


class PushPriority:
    """Android delivery priority."""

    HIGH: Final[str] = "high"
    NORMAL: Final[str] = "normal"


class PushText:
    """User-visible notification text."""

    NEW_REPORT_TITLE: Final[str] = "New Report"
    REPORTED_BY: Final[str] = "Reported by"
    SIREN_ACTIVE: Final[str] = "\U0001F6A8 SIREN ACTIVE"
    TEST_TITLE: Final[str] = "Test Notification"
    TEST_DEFAULT_BODY: Final[str] = "Test notification from server"
    PROBE_REGISTERED: Final[str] = "Push token registered successfully"
    PROBE_HYGIENE: Final[str] = "Token validation check"


# =============================================================================
# Limits
# =============================================================================


class Limits:
    """Query limits for the read-side endpoints."""

    TOP_LOCATIONS: Final[int] = 5
    RECENT_REPORTS: Final[int] = 5
    REPORTS_BY_USERNAME: Final[int] = 100
