"""
Tests for the live-listener hub and the report event broadcaster.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from starlette.websockets import WebSocketState

from incident_shared.config.constants import Topics
from incident_shared.utils.schemas import ReportOutput
from incident_api.services.events import EventBroadcaster, LiveListenerHub
from incident_api.services.events.hub import CLOSE_GOING_AWAY


def fake_websocket(send_side_effect=None) -> MagicMock:
    ws = MagicMock()
    ws.client_state = WebSocketState.CONNECTED
    ws.application_state = WebSocketState.CONNECTED
    ws.accept = AsyncMock()
    ws.close = AsyncMock()
    ws.send_json = AsyncMock(side_effect=send_side_effect)
    return ws


@pytest.fixture
def hub():
    return LiveListenerHub(send_timeout=0.1)


class TestLiveListenerHub:
    """Tests for listener registration and delivery."""

    @pytest.mark.asyncio
    async def test_connect_accepts_and_registers(self, hub):
        ws = fake_websocket()

        await hub.connect(ws)

        ws.accept.assert_awaited_once()
        assert hub.count == 1

    @pytest.mark.asyncio
    async def test_broadcast_reaches_every_listener(self, hub):
        listeners = [fake_websocket() for _ in range(3)]
        for ws in listeners:
            await hub.connect(ws)

        delivered = await hub.broadcast({"event": "x"})

        assert delivered == 3
        for ws in listeners:
            ws.send_json.assert_awaited_once_with({"event": "x"})

    @pytest.mark.asyncio
    async def test_dead_listener_dropped(self, hub):
        healthy = fake_websocket()
        dead = fake_websocket(send_side_effect=RuntimeError("socket closed"))
        await hub.connect(healthy)
        await hub.connect(dead)

        delivered = await hub.broadcast({"event": "x"})

        assert delivered == 1
        assert hub.count == 1
        healthy.send_json.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_hung_listener_times_out(self, hub):
        async def hang(_):
            await asyncio.sleep(10)

        healthy = fake_websocket()
        hung = fake_websocket(send_side_effect=hang)
        await hub.connect(healthy)
        await hub.connect(hung)

        delivered = await hub.broadcast({"event": "x"})

        assert delivered == 1
        assert hub.count == 1

    @pytest.mark.asyncio
    async def test_disconnected_state_skipped(self, hub):
        ws = fake_websocket()
        await hub.connect(ws)
        ws.client_state = WebSocketState.DISCONNECTED

        assert await hub.broadcast({"event": "x"}) == 0
        ws.send_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_late_listener_gets_no_replay(self, hub):
        await hub.broadcast({"event": "early"})
        late = fake_websocket()
        await hub.connect(late)

        late.send_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_disconnect(self, hub):
        ws = fake_websocket()
        await hub.connect(ws)
        await hub.disconnect(ws)

        assert hub.count == 0
        assert await hub.broadcast({"event": "x"}) == 0

    @pytest.mark.asyncio
    async def test_close_all_refuses_new_connections(self, hub):
        ws = fake_websocket()
        await hub.connect(ws)

        await hub.close_all()

        ws.close.assert_awaited_once()
        assert ws.close.await_args.kwargs["code"] == CLOSE_GOING_AWAY
        assert hub.count == 0
        with pytest.raises(ConnectionError):
            await hub.connect(fake_websocket())


class TestEventBroadcaster:
    """Tests for the event envelope."""

    @pytest.mark.asyncio
    async def test_envelope(self, hub):
        ws = fake_websocket()
        await hub.connect(ws)
        broadcaster = EventBroadcaster(hub)

        delivered = await broadcaster.publish(Topics.NEW_REPORT, {"id": 1, "address": "Jl. A"})

        assert delivered == 1
        ws.send_json.assert_awaited_once_with(
            {"event": "new_report", "data": {"id": 1, "address": "Jl. A"}}
        )

    @pytest.mark.asyncio
    async def test_payload_is_json_encoded(self, hub):
        ws = fake_websocket()
        await hub.connect(ws)
        report = ReportOutput(
            id=1,
            reporter_id=2,
            reporter_type="user",
            reporter_name="Citizen One",
            address="Jl. A",
            category="Banjir",
            status="pending",
            created_at=datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc),
        )

        await EventBroadcaster(hub).publish(Topics.NEW_REPORT, report)

        message = ws.send_json.await_args.args[0]
        assert message["data"]["created_at"] == "2026-03-01T08:00:00Z"
        assert message["data"]["reporter_name"] == "Citizen One"

    @pytest.mark.asyncio
    async def test_no_listeners(self, hub):
        assert await EventBroadcaster(hub).publish(Topics.NEW_REPORT, {"id": 1}) == 0
