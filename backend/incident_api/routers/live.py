"""
Live-listener WebSocket endpoint.

Siren devices and dashboards connect here to receive report events as
``{"event": topic, "data": payload}`` messages. The only message a
listener sends is ``ping``, answered with ``pong``.
"""

import hmac

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect

from incident_shared.config.logging import get_logger
from incident_shared.config.settings import settings
from incident_api.core.dependencies import AlertServices, get_services
from incident_api.services.events import CLOSE_UNAUTHORIZED


logger = get_logger(__name__)

router = APIRouter(tags=["live"])


def _key_accepted(key: str | None) -> bool:
    if not settings.live_listener_key:
        return True
    return key is not None and hmac.compare_digest(key, settings.live_listener_key)


@router.websocket("/ws/iot")
@router.websocket("/iot")
async def live_listener(
    websocket: WebSocket,
    key: str | None = Query(default=None),
    services: AlertServices = Depends(get_services),
) -> None:
    hub = services.hub

    if not _key_accepted(key):
        await websocket.accept()
        await websocket.close(code=CLOSE_UNAUTHORIZED, reason="Unauthorized")
        logger.warning("Live listener rejected: missing or wrong key")
        return

    try:
        await hub.connect(websocket)
    except ConnectionError as e:
        logger.warning("Live listener connection refused", error=str(e))
        return

    try:
        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(websocket)
