"""
Tests for report creation and status changes.
"""

import time
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import select

from incident_shared.config.constants import ReporterType, ReportStatus, Topics
from incident_shared.infrastructure.tasks import BackgroundTaskGroup
from incident_shared.security.auth import Principal
from incident_shared.utils.exceptions import (
    AuthorizationError,
    InvalidStatusError,
    NotFoundError,
    ValidationError,
)
from incident_shared.utils.schemas import ReportCreateRequest
from incident_api.models import Report
from incident_api.services.domain import ReportIngestor


@pytest.fixture
def broadcaster():
    mock = MagicMock()
    mock.publish = AsyncMock(return_value=1)
    return mock


@pytest.fixture
def dispatcher():
    mock = MagicMock()
    mock.broadcast = AsyncMock()
    return mock


@pytest.fixture
def tasks():
    return BackgroundTaskGroup()


@pytest.fixture
def ingestor(db_session, broadcaster, dispatcher, tasks):
    return ReportIngestor(db_session, broadcaster, dispatcher, tasks)


def citizen(user) -> Principal:
    return Principal(id=user.id, is_admin=False)


def administrator(admin) -> Principal:
    return Principal(id=admin.id, is_admin=True, role=admin.role)


# =============================================================================
# Create
# =============================================================================


class TestCreate:
    """Tests for report creation."""

    @pytest.mark.asyncio
    async def test_citizen_report_with_account_address(
        self, ingestor, tasks, broadcaster, dispatcher, seed_user, db_session
    ):
        """
        A citizen filing with use_account_data gets their stored address,
        one published new-report event and one alert fan-out.
        """
        draft = ReportCreateRequest(category="Kebakaran", use_account_data=True)

        report = await ingestor.create(citizen(seed_user), draft)
        await tasks.drain()

        assert report.address == seed_user.address
        assert report.reporter_type == ReporterType.USER
        assert report.reporter_name == seed_user.name
        assert report.status == ReportStatus.PENDING
        assert report.phone == "-"

        stored = db_session.scalar(select(Report).where(Report.id == report.id))
        assert stored is not None

        broadcaster.publish.assert_awaited_once()
        topic, payload = broadcaster.publish.await_args.args
        assert topic == Topics.NEW_REPORT
        assert payload.id == report.id

        dispatcher.broadcast.assert_awaited_once()
        alert = dispatcher.broadcast.await_args.args[0]
        assert alert.report_id == report.id
        assert alert.reporter_name == seed_user.name

    @pytest.mark.asyncio
    async def test_explicit_address_used_without_account_data(self, ingestor, seed_user):
        draft = ReportCreateRequest(category="Banjir", address="Jl. Thamrin 9", phone="0811")

        report = await ingestor.create(citizen(seed_user), draft)

        assert report.address == "Jl. Thamrin 9"
        assert report.phone == "0811"

    @pytest.mark.asyncio
    async def test_legacy_field_names(self, ingestor, seed_user):
        draft = ReportCreateRequest.model_validate(
            {"jenis_laporan": "Pencurian", "address": "Pasar Baru", "isSirine": True}
        )

        report = await ingestor.create(citizen(seed_user), draft)

        assert report.category == "Pencurian"
        assert report.is_sirine is True

    @pytest.mark.asyncio
    async def test_admin_report(self, ingestor, seed_admin):
        draft = ReportCreateRequest(category="Kebakaran", address="Gedung A", is_sirine=True)

        report = await ingestor.create(administrator(seed_admin), draft)

        assert report.reporter_type == ReporterType.ADMIN
        assert report.reporter_name == seed_admin.name
        assert report.is_sirine is True

    @pytest.mark.asyncio
    async def test_admin_must_supply_address(self, ingestor, seed_admin):
        """Administrators have no account address to fall back on."""
        draft = ReportCreateRequest(category="Kebakaran", use_account_data=True)

        with pytest.raises(ValidationError) as exc_info:
            await ingestor.create(administrator(seed_admin), draft)

        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_category(self, ingestor, seed_user, tasks):
        with pytest.raises(ValidationError) as exc_info:
            await ingestor.create(citizen(seed_user), ReportCreateRequest(address="Jl. A"))

        assert exc_info.value.detail == "category is required"
        assert tasks.pending == 0

    @pytest.mark.asyncio
    async def test_blank_category(self, ingestor, seed_user):
        with pytest.raises(ValidationError):
            await ingestor.create(citizen(seed_user), ReportCreateRequest(category="   ", address="Jl. A"))

    @pytest.mark.asyncio
    async def test_missing_address(self, ingestor, seed_user, db_session):
        with pytest.raises(ValidationError) as exc_info:
            await ingestor.create(citizen(seed_user), ReportCreateRequest(category="Banjir"))

        assert exc_info.value.detail == "address is required"
        assert db_session.scalar(select(Report)) is None

    @pytest.mark.asyncio
    async def test_account_without_address(self, ingestor, db_session, seed_user):
        seed_user.address = None
        db_session.commit()

        with pytest.raises(ValidationError):
            await ingestor.create(
                citizen(seed_user), ReportCreateRequest(category="Banjir", use_account_data=True)
            )

    @pytest.mark.asyncio
    async def test_deleted_account(self, ingestor, db_session):
        with pytest.raises(NotFoundError):
            await ingestor.create(
                Principal(id=999, is_admin=False),
                ReportCreateRequest(category="Banjir", address="Jl. A"),
            )

    @pytest.mark.asyncio
    async def test_fan_out_failure_does_not_reach_caller(
        self, ingestor, tasks, broadcaster, dispatcher, seed_user
    ):
        """The report is returned even when both background deliveries raise."""
        broadcaster.publish.side_effect = RuntimeError("listener hub down")
        dispatcher.broadcast.side_effect = RuntimeError("provider down")

        report = await ingestor.create(
            citizen(seed_user), ReportCreateRequest(category="Banjir", address="Jl. A")
        )
        await tasks.drain()

        assert report.id is not None
        dispatcher.broadcast.assert_awaited_once()


# =============================================================================
# Status
# =============================================================================


class TestUpdateStatus:
    """Tests for status changes."""

    @pytest.fixture
    async def existing(self, ingestor, tasks, broadcaster, seed_user):
        report = await ingestor.create(
            citizen(seed_user), ReportCreateRequest(category="Banjir", address="Jl. A")
        )
        await tasks.drain()
        broadcaster.publish.reset_mock()
        return report

    @pytest.mark.asyncio
    async def test_admin_updates_status(self, ingestor, tasks, broadcaster, dispatcher, existing, seed_admin):
        dispatcher.broadcast.reset_mock()

        report = await ingestor.update_status(administrator(seed_admin), existing.id, ReportStatus.COMPLETED)
        await tasks.drain()

        assert report.status == ReportStatus.COMPLETED
        topic, payload = broadcaster.publish.await_args.args
        assert topic == Topics.REPORT_STATUS_UPDATE
        assert payload["report_id"] == existing.id
        assert payload["status"] == ReportStatus.COMPLETED
        dispatcher.broadcast.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_any_transition_allowed(self, ingestor, existing, seed_admin):
        principal = administrator(seed_admin)

        await ingestor.update_status(principal, existing.id, ReportStatus.COMPLETED)
        report = await ingestor.update_status(principal, existing.id, ReportStatus.PENDING)

        assert report.status == ReportStatus.PENDING

    @pytest.mark.asyncio
    async def test_citizen_forbidden(self, ingestor, existing, seed_user, broadcaster):
        with pytest.raises(AuthorizationError) as exc_info:
            await ingestor.update_status(citizen(seed_user), existing.id, ReportStatus.COMPLETED)

        assert exc_info.value.status_code == 403
        broadcaster.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_status(self, ingestor, existing, seed_admin):
        with pytest.raises(InvalidStatusError) as exc_info:
            await ingestor.update_status(administrator(seed_admin), existing.id, "done")

        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_status(self, ingestor, existing, seed_admin):
        with pytest.raises(ValidationError):
            await ingestor.update_status(administrator(seed_admin), existing.id, None)

    @pytest.mark.asyncio
    async def test_unknown_report(self, ingestor, seed_admin, db_session):
        with pytest.raises(NotFoundError) as exc_info:
            await ingestor.update_status(administrator(seed_admin), 12345, ReportStatus.COMPLETED)

        assert exc_info.value.status_code == 404


class TestLoopResponsiveness:
    """The insert and the status write run in a worker thread."""

    @pytest.mark.asyncio
    async def test_create_does_not_stall_loop(self, ingestor, seed_user, loop_stall, monkeypatch):
        insert = ingestor._insert

        def slow_insert(principal, draft):
            time.sleep(0.3)
            return insert(principal, draft)

        monkeypatch.setattr(ingestor, "_insert", slow_insert)
        draft = ReportCreateRequest(category="Banjir", address="Jl. Thamrin 9")

        stall = await loop_stall(ingestor.create(citizen(seed_user), draft))

        assert stall < 0.2

    @pytest.mark.asyncio
    async def test_status_update_does_not_stall_loop(self, ingestor, seed_user, seed_admin, loop_stall, monkeypatch):
        report = await ingestor.create(citizen(seed_user), ReportCreateRequest(category="Banjir", address="Jl. A"))
        apply_status = ingestor._apply_status

        def slow_apply(report_id, status):
            time.sleep(0.3)
            return apply_status(report_id, status)

        monkeypatch.setattr(ingestor, "_apply_status", slow_apply)

        stall = await loop_stall(ingestor.update_status(administrator(seed_admin), report.id, ReportStatus.COMPLETED))

        assert stall < 0.2
