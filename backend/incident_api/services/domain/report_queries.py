"""
Report read-side queries: listings, detail, statistics and profiles.
"""

from __future__ import annotations

from datetime import datetime, time, timezone

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from incident_shared.config.constants import Limits, ReporterType
from incident_shared.config.logging import get_logger
from incident_shared.security.auth import Principal
from incident_shared.utils.exceptions import NotFoundError
from incident_shared.utils.schemas import (
    CitizenOutput,
    LocationCount,
    ProfileOutput,
    RecentReport,
    ReportCounts,
    ReporterSummary,
    ReportOutput,
    ReportStats,
    UserStatsOutput,
)
from incident_api.models import Admin, Report, User

logger = get_logger(__name__)


def _start_of_today() -> datetime:
    return datetime.combine(datetime.now(timezone.utc).date(), time.min, tzinfo=timezone.utc)


class ReportQueryService:
    """Read-only service; never commits."""

    def __init__(self, db: Session):
        self._db = db

    def _with_reporters(self):
        return (
            select(Report, User.name, User.phone, Admin.name)
            .outerjoin(
                User,
                and_(Report.reporter_type == ReporterType.USER, User.id == Report.reporter_id),
            )
            .outerjoin(
                Admin,
                and_(Report.reporter_type == ReporterType.ADMIN, Admin.id == Report.reporter_id),
            )
        )

    @staticmethod
    def _row_to_output(row) -> ReportOutput:
        report, user_name, user_phone, admin_name = row
        name = admin_name if report.reporter_type == ReporterType.ADMIN else user_name
        phone = report.phone
        if not phone or phone == "-":
            phone = user_phone or "-"
        return ReportOutput(
            id=report.id,
            reporter_id=report.reporter_id,
            reporter_type=report.reporter_type,
            reporter_name=name or "-",
            address=report.address,
            phone=phone,
            category=report.category,
            is_sirine=report.is_sirine,
            status=report.status,
            created_at=report.created_at,
        )

    # =========================================================================
    # Reports
    # =========================================================================

    def list_all(self) -> list[ReportOutput]:
        """Every report, newest first, with the reporter's name."""
        stmt = self._with_reporters().order_by(Report.created_at.desc(), Report.id.desc())
        return [self._row_to_output(row) for row in self._db.execute(stmt)]

    def get(self, report_id: int) -> ReportOutput:
        row = self._db.execute(self._with_reporters().where(Report.id == report_id)).first()
        if row is None:
            raise NotFoundError("Report", report_id)
        return self._row_to_output(row)

    def total(self) -> int:
        return self._db.scalar(select(func.count(Report.id))) or 0

    def stats(self) -> ReportStats:
        """Total, today's count and the most reported addresses."""
        today = self._db.scalar(
            select(func.count(Report.id)).where(Report.created_at >= _start_of_today())
        ) or 0

        count = func.count(Report.id).label("count")
        locations = self._db.execute(
            select(Report.address, count)
            .group_by(Report.address)
            .order_by(count.desc(), Report.address)
            .limit(Limits.TOP_LOCATIONS)
        )
        return ReportStats(
            total=self.total(),
            today=today,
            top_locations=[LocationCount(address=address, count=n) for address, n in locations],
        )

    def _counts_for(self, reporter_id: int, reporter_type: str) -> ReportCounts:
        owned = and_(Report.reporter_id == reporter_id, Report.reporter_type == reporter_type)
        total = self._db.scalar(select(func.count(Report.id)).where(owned)) or 0
        today = self._db.scalar(
            select(func.count(Report.id)).where(owned, Report.created_at >= _start_of_today())
        ) or 0
        recent = self._db.scalars(
            select(Report)
            .where(owned)
            .order_by(Report.created_at.desc(), Report.id.desc())
            .limit(Limits.RECENT_REPORTS)
        )
        return ReportCounts(
            total=total,
            today=today,
            recent=[RecentReport.model_validate(r) for r in recent],
        )

    def user_stats(self, principal: Principal) -> UserStatsOutput:
        """Statistics of the caller's own reports."""
        if principal.is_admin:
            admin = self._db.get(Admin, principal.id)
            summary = ReporterSummary(name=admin.name if admin else "Unknown Admin", address="-", phone="-")
            reporter_type = ReporterType.ADMIN
        else:
            user = self._db.get(User, principal.id)
            if user is None:
                summary = ReporterSummary(name="Unknown", address="Unknown")
            else:
                summary = ReporterSummary(name=user.name, address=user.address, phone=user.phone)
            reporter_type = ReporterType.USER

        return UserStatsOutput(user=summary, reports=self._counts_for(principal.id, reporter_type))

    # =========================================================================
    # Citizens
    # =========================================================================

    def _citizen(self, username: str) -> User:
        user = self._db.scalar(select(User).where(User.username == username))
        if user is None:
            raise NotFoundError("User", username)
        return user

    def citizen(self, username: str) -> CitizenOutput:
        return CitizenOutput.model_validate(self._citizen(username))

    def reports_by_username(self, username: str) -> list[ReportOutput]:
        """A citizen's reports, newest first, capped."""
        user = self._citizen(username)
        stmt = (
            self._with_reporters()
            .where(Report.reporter_type == ReporterType.USER, Report.reporter_id == user.id)
            .order_by(Report.created_at.desc(), Report.id.desc())
            .limit(Limits.REPORTS_BY_USERNAME)
        )
        return [self._row_to_output(row) for row in self._db.execute(stmt)]

    def citizen_stats(self, username: str) -> UserStatsOutput:
        user = self._citizen(username)
        return UserStatsOutput(
            user=ReporterSummary(name=user.name, address=user.address, phone=user.phone),
            reports=self._counts_for(user.id, ReporterType.USER),
        )

    # =========================================================================
    # Profile
    # =========================================================================

    def profile(self, principal: Principal) -> ProfileOutput:
        if principal.is_admin:
            admin = self._db.get(Admin, principal.id)
            if admin is None:
                raise NotFoundError("Admin", principal.id)
            return ProfileOutput(
                id=admin.id,
                username=admin.username,
                name=admin.name,
                created_at=admin.created_at,
                role=admin.role,
                is_admin=True,
            )

        user = self._db.get(User, principal.id)
        if user is None:
            raise NotFoundError("User", principal.id)
        return ProfileOutput(
            id=user.id,
            username=user.username,
            name=user.name,
            address=user.address or "-",
            phone=user.phone or "-",
            created_at=user.created_at,
            is_admin=False,
        )
