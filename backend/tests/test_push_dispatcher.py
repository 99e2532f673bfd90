"""
Tests for the administrator push fan-out.
"""

import asyncio
import time
from datetime import datetime, timezone

import pytest

from incident_shared.config.constants import PushMessageType, PushPriority, PushText
from incident_api.services.push import DeviceTarget, PushDispatcher, ReportAlert, SendResult, SendStatus
from incident_api.services.push.messages import alert_body, build_alert_message
from incident_api.services.registry import DeviceRegistry, SessionRegistry


@pytest.fixture
def devices(session_factory, push_sender):
    return DeviceRegistry(session_factory, push_sender, SessionRegistry(session_factory))


@pytest.fixture
def dispatcher(devices, push_sender):
    return PushDispatcher(devices, push_sender, max_concurrency=10)


@pytest.fixture
def alert():
    return ReportAlert(
        report_id=42,
        category="Kebakaran",
        address="Jl. Sudirman 5",
        reporter_name="Citizen One",
        is_sirine=True,
        created_at=datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc),
    )


async def register_devices(devices, push_sender, make_admin, count):
    """Register ``count`` administrators, then forget the probes."""
    admins = []
    for i in range(count):
        admin = make_admin(f"admin{i}")
        await devices.register(admin.id, f"token-{i}")
        admins.append(admin)
    push_sender.sent.clear()
    return admins


class TestBroadcast:
    """Tests for new-report alert fan-out."""

    @pytest.mark.asyncio
    async def test_every_device_attempted_once(self, dispatcher, devices, push_sender, make_admin, alert):
        await register_devices(devices, push_sender, make_admin, 4)

        report = await dispatcher.broadcast(alert)

        assert report.attempted == 4
        assert report.succeeded == 4
        assert report.failed == 0
        assert sorted(push_sender.tokens_sent()) == [f"token-{i}" for i in range(4)]

    @pytest.mark.asyncio
    async def test_invalid_token_removed_others_delivered(
        self, dispatcher, devices, push_sender, make_admin, alert
    ):
        """
        Three devices, the second permanently invalid: two deliveries, one
        failure, and the next broadcast no longer includes the dead token.
        """
        admins = await register_devices(devices, push_sender, make_admin, 3)
        push_sender.script("token-1", SendResult.invalid_token("unregistered"))

        report = await dispatcher.broadcast(alert)

        assert (report.attempted, report.succeeded, report.failed) == (3, 2, 1)
        assert report.removed == 1
        assert devices.get(admins[1].id) is None

        push_sender.sent.clear()
        second = await dispatcher.broadcast(alert)

        assert second.attempted == 2
        assert "token-1" not in push_sender.tokens_sent()

    @pytest.mark.asyncio
    async def test_transient_failure_keeps_registration(
        self, dispatcher, devices, push_sender, make_admin, alert
    ):
        admins = await register_devices(devices, push_sender, make_admin, 2)
        push_sender.script("token-0", SendResult.failed("unavailable"))

        report = await dispatcher.broadcast(alert)

        assert report.failed == 1
        assert report.removed == 0
        assert devices.get(admins[0].id) == "token-0"

    @pytest.mark.asyncio
    async def test_raising_send_does_not_affect_others(
        self, dispatcher, devices, push_sender, make_admin, alert
    ):
        admins = await register_devices(devices, push_sender, make_admin, 3)
        push_sender.script("token-0", RuntimeError("connection reset"))

        report = await dispatcher.broadcast(alert)

        assert report.attempted == 3
        assert report.succeeded == 2
        failed = [o for o in report.outcomes if not o.success]
        assert failed[0].admin_id == admins[0].id
        assert failed[0].status is SendStatus.FAILED
        assert "connection reset" in failed[0].error
        assert devices.get(admins[0].id) == "token-0"

    @pytest.mark.asyncio
    async def test_slow_device_does_not_serialize_others(
        self, dispatcher, devices, push_sender, make_admin, alert
    ):
        """Sends run concurrently: the fan-out takes about one send, not N."""
        await register_devices(devices, push_sender, make_admin, 5)
        push_sender.delay = 0.2

        loop = asyncio.get_running_loop()
        start = loop.time()
        report = await dispatcher.broadcast(alert)
        elapsed = loop.time() - start

        assert report.succeeded == 5
        assert push_sender.max_in_flight == 5
        assert elapsed < 0.2 * 5

    @pytest.mark.asyncio
    async def test_concurrency_bound(self, devices, push_sender, make_admin, alert):
        await register_devices(devices, push_sender, make_admin, 6)
        push_sender.delay = 0.05
        dispatcher = PushDispatcher(devices, push_sender, max_concurrency=2)

        report = await dispatcher.broadcast(alert)

        assert report.attempted == 6
        assert push_sender.max_in_flight == 2

    @pytest.mark.asyncio
    async def test_no_devices(self, dispatcher, push_sender, alert, db_session):
        report = await dispatcher.broadcast(alert)

        assert (report.attempted, report.succeeded, report.failed) == (0, 0, 0)
        assert push_sender.sent == []

    @pytest.mark.asyncio
    async def test_alert_carries_device_session(self, dispatcher, devices, push_sender, seed_admin, alert):
        info = await devices.register(seed_admin.id, "token-a")
        push_sender.sent.clear()

        await dispatcher.broadcast(alert)

        _, message = push_sender.sent[0]
        assert message.data["session_id"] == info.session_id
        assert message.data["report_id"] == "42"
        assert message.data["type"] == PushMessageType.NEW_REPORT

    def test_invalid_concurrency(self, devices, push_sender):
        with pytest.raises(ValueError):
            PushDispatcher(devices, push_sender, max_concurrency=0)


class TestSendTest:
    """Tests for the diagnostic test notification."""

    @pytest.mark.asyncio
    async def test_invalid_token_not_removed(self, dispatcher, devices, push_sender, make_admin):
        admins = await register_devices(devices, push_sender, make_admin, 2)
        push_sender.script("token-1", SendResult.invalid_token("unregistered"))

        report = await dispatcher.send_test("hello")

        assert (report.attempted, report.succeeded) == (2, 1)
        assert report.removed == 0
        assert devices.get(admins[1].id) == "token-1"

    @pytest.mark.asyncio
    async def test_test_message_shape(self, dispatcher, devices, push_sender, seed_admin):
        await devices.register(seed_admin.id, "token-a")
        push_sender.sent.clear()

        report = await dispatcher.send_test("hello")

        _, message = push_sender.sent[0]
        assert message.title == PushText.TEST_TITLE
        assert message.body == "hello"
        assert message.notification_priority == "max"
        assert message.direct_boot_ok is True
        assert message.data["test_id"].endswith(f"_{seed_admin.id}")
        assert report.outcomes[0].message_id is not None


class TestAlertMessage:
    """Tests for the alert payload."""

    def test_siren_line_present(self, alert):
        assert alert_body(alert).endswith(PushText.SIREN_ACTIVE)

    def test_siren_line_absent(self, alert):
        quiet = ReportAlert(**{**alert.__dict__, "is_sirine": False})

        assert PushText.SIREN_ACTIVE not in alert_body(quiet)

    def test_alert_fields(self, alert):
        message = build_alert_message(alert, session_id=None, ttl_seconds=15, expiry_seconds=30)

        assert message.priority == PushPriority.HIGH
        assert message.ttl_seconds == 15
        assert message.data["is_sirine"] == "1"
        assert message.data["session_id"] == "unknown"
        assert message.data["report_created_at"] == str(int(alert.created_at.timestamp() * 1000))
        assert int(message.data["expires_at"]) - int(message.data["timestamp"]) == 30_000
        assert "Citizen One" in message.body
        assert all(isinstance(value, str) for value in message.data.values())

    def test_naive_created_at_read_as_utc(self, alert):
        naive = ReportAlert(**{**alert.__dict__, "created_at": alert.created_at.replace(tzinfo=None)})

        message = build_alert_message(naive, session_id="s", ttl_seconds=15, expiry_seconds=30)

        assert message.data["report_created_at"] == str(int(alert.created_at.timestamp() * 1000))


# =============================================================================
# Event loop responsiveness
# =============================================================================


class SlowDevices:
    """Registry stand-in whose queries block the calling thread."""

    def __init__(self, delay: float):
        self.delay = delay
        self.tokens = {1: "token-a", 2: "token-b"}

    def snapshot(self):
        time.sleep(self.delay)
        return [DeviceTarget(admin_id=a, push_token=t) for a, t in sorted(self.tokens.items())]

    def remove(self, admin_id, only_if_token=None):
        time.sleep(self.delay)
        return self.tokens.pop(admin_id, None) is not None


class TestLoopResponsiveness:
    """Registry queries must not hold the event loop during a fan-out."""

    @pytest.mark.asyncio
    async def test_broadcast_snapshot_does_not_stall_loop(self, push_sender, loop_stall, alert):
        dispatcher = PushDispatcher(SlowDevices(delay=0.3), push_sender)

        stall = await loop_stall(dispatcher.broadcast(alert))

        assert stall < 0.2

    @pytest.mark.asyncio
    async def test_invalid_token_removal_does_not_stall_loop(self, push_sender, loop_stall, alert):
        devices = SlowDevices(delay=0.3)
        push_sender.script("token-a", SendResult.invalid_token("unregistered"))
        dispatcher = PushDispatcher(devices, push_sender)

        stall = await loop_stall(dispatcher.broadcast(alert))

        assert stall < 0.2
        assert 1 not in devices.tokens

    @pytest.mark.asyncio
    async def test_send_test_snapshot_does_not_stall_loop(self, push_sender, loop_stall):
        dispatcher = PushDispatcher(SlowDevices(delay=0.3), push_sender)

        stall = await loop_stall(dispatcher.send_test("hello"))

        assert stall < 0.2
