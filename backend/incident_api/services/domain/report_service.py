"""
Report Domain Service.

Validates and persists reports, then hands the new report to the live
listeners and the push fan-out. Both run as independent background tasks:
the caller gets the persisted report back without waiting for either, and
their failures never reach the caller.

Database work runs in a worker thread so the event loop is never held.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from incident_shared.config.constants import ReporterType, ReportStatus, Topics
from incident_shared.config.logging import get_logger
from incident_shared.infrastructure.db import safe_commit
from incident_shared.infrastructure.tasks import BackgroundTaskGroup
from incident_shared.security.auth import Principal, require_admin
from incident_shared.utils.exceptions import (
    InvalidStatusError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from incident_shared.utils.schemas import ReportCreateRequest, ReportOutput
from incident_api.models import Admin, Report, User
from incident_api.services.events.broadcaster import EventBroadcaster
from incident_api.services.push.messages import ReportAlert

if TYPE_CHECKING:
    from incident_api.services.push.dispatcher import PushDispatcher

logger = get_logger(__name__)


def reporter_name(db: Session, report: Report) -> str:
    """Display name of whoever filed ``report``, or "-" when they no longer exist."""
    model = Admin if report.reporter_type == ReporterType.ADMIN else User
    name = db.scalar(select(model.name).where(model.id == report.reporter_id))
    return name or "-"


def to_output(report: Report, name: str) -> ReportOutput:
    return ReportOutput(
        id=report.id,
        reporter_id=report.reporter_id,
        reporter_type=report.reporter_type,
        reporter_name=name,
        address=report.address,
        phone=report.phone or "-",
        category=report.category,
        is_sirine=report.is_sirine,
        status=report.status,
        created_at=report.created_at,
    )


class ReportIngestor:
    """
    Domain service for report creation and status changes.

    Usage:
        ingestor = ReportIngestor(db, broadcaster, dispatcher, tasks)
        report = await ingestor.create(principal, draft)
        report = await ingestor.update_status(principal, report.id, "completed")
    """

    def __init__(
        self,
        db: Session,
        broadcaster: EventBroadcaster,
        dispatcher: "PushDispatcher",
        tasks: BackgroundTaskGroup,
    ):
        self._db = db
        self._broadcaster = broadcaster
        self._dispatcher = dispatcher
        self._tasks = tasks

    # =========================================================================
    # Create
    # =========================================================================

    async def create(self, principal: Principal, draft: ReportCreateRequest) -> ReportOutput:
        """
        Persist a new report filed by ``principal``.

        The reporter is always the caller; the body cannot name another one.

        Raises:
            ValidationError: Missing category or address.
            NotFoundError: The caller's account no longer exists.
            PersistenceError: The insert failed.
        """
        report, output, name = await asyncio.to_thread(self._insert, principal, draft)
        logger.info(
            "Report created",
            report_id=report.id,
            reporter_id=principal.id,
            reporter_type=report.reporter_type,
            is_sirine=report.is_sirine,
        )

        alert = ReportAlert(
            report_id=report.id,
            category=report.category,
            address=report.address,
            reporter_name=name,
            is_sirine=report.is_sirine,
            created_at=report.created_at,
        )
        self._tasks.spawn(
            f"publish:{Topics.NEW_REPORT}:{report.id}",
            self._broadcaster.publish(Topics.NEW_REPORT, output),
        )
        self._tasks.spawn(f"push:{Topics.NEW_REPORT}:{report.id}", self._dispatcher.broadcast(alert))

        return output

    def _insert(self, principal: Principal, draft: ReportCreateRequest) -> tuple[Report, ReportOutput, str]:
        category = (draft.category or "").strip()
        if not category:
            raise ValidationError("category is required", user_id=principal.id)

        address = (draft.address or "").strip()

        if principal.is_admin:
            admin = self._db.get(Admin, principal.id)
            if admin is None:
                raise NotFoundError("Admin", principal.id)
            name = admin.name
            reporter_type = ReporterType.ADMIN
            if not address:
                raise ValidationError("address is required for admin reports", user_id=principal.id)
        else:
            user = self._db.get(User, principal.id)
            if user is None:
                raise NotFoundError("User", principal.id)
            name = user.name
            reporter_type = ReporterType.USER
            if draft.use_account_data:
                address = (user.address or "").strip()
                logger.debug("Using address from user account", user_id=principal.id)

        if not address:
            raise ValidationError("address is required", user_id=principal.id)

        report = Report(
            reporter_id=principal.id,
            reporter_type=reporter_type,
            address=address,
            phone=(draft.phone or "").strip() or "-",
            category=category,
            is_sirine=draft.is_sirine,
            status=ReportStatus.PENDING,
        )

        try:
            self._db.add(report)
            safe_commit(self._db)
            self._db.refresh(report)
        except SQLAlchemyError as e:
            raise PersistenceError("create report", user_id=principal.id, error=str(e))

        return report, to_output(report, name), name

    # =========================================================================
    # Status
    # =========================================================================

    async def update_status(self, principal: Principal, report_id: int, status: str | None) -> ReportOutput:
        """
        Set the status of a report. Any status may follow any other.

        Publishes a status-update event; never sends push notifications.

        Raises:
            AuthorizationError: The caller is not an administrator.
            ValidationError: The status is missing or not a known value.
            NotFoundError: The report does not exist.
        """
        require_admin(principal, "update report status")

        if not status:
            raise ValidationError("status is required", report_id=report_id)
        if status not in ReportStatus.ALL:
            raise InvalidStatusError(status, ReportStatus.ALL, report_id=report_id)

        previous, output = await asyncio.to_thread(self._apply_status, report_id, status)
        logger.info(
            "Report status updated",
            report_id=report_id,
            previous=previous,
            status=status,
            admin_id=principal.id,
        )

        self._tasks.spawn(
            f"publish:{Topics.REPORT_STATUS_UPDATE}:{report_id}",
            self._broadcaster.publish(
                Topics.REPORT_STATUS_UPDATE,
                {"report_id": report_id, "status": status, "report": output},
            ),
        )
        return output

    def _apply_status(self, report_id: int, status: str) -> tuple[str, ReportOutput]:
        report = self._db.get(Report, report_id)
        if report is None:
            raise NotFoundError("Report", report_id)

        previous = report.status
        report.status = status
        try:
            safe_commit(self._db)
            self._db.refresh(report)
        except SQLAlchemyError as e:
            raise PersistenceError("update report status", report_id=report_id, error=str(e))

        return previous, to_output(report, reporter_name(self._db, report))
