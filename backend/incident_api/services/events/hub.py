"""
Live-listener hub.

Tracks the WebSocket connections of siren devices and dashboards and
delivers each published event to a snapshot of the listeners connected
at publish time.
"""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from incident_shared.config.logging import get_logger

logger = get_logger(__name__)

# Listener close codes
CLOSE_UNAUTHORIZED = 4001
CLOSE_GOING_AWAY = 1001


def _is_ws_connected(ws: WebSocket) -> bool:
    """True when the connection is ready to send and receive."""
    return ws.client_state == WebSocketState.CONNECTED and ws.application_state == WebSocketState.CONNECTED


class LiveListenerHub:
    """
    Registry of connected live listeners.

    Delivery is at most once per listener: no acknowledgment, no retry,
    no replay for listeners that connect later. A listener whose send
    fails is dropped.
    """

    def __init__(self, send_timeout: float = 5.0):
        self._listeners: set[WebSocket] = set()
        self._lock = asyncio.Lock()
        self._send_timeout = send_timeout
        self._shutdown = False

    @property
    def count(self) -> int:
        return len(self._listeners)

    async def connect(self, websocket: WebSocket, timeout: float = 5.0) -> None:
        """
        Accept a WebSocket connection and register it.

        Raises:
            ConnectionError: If the hub is shutting down or the accept handshake times out.
        """
        if self._shutdown:
            raise ConnectionError("Server is shutting down")

        try:
            await asyncio.wait_for(websocket.accept(), timeout=timeout)
        except asyncio.TimeoutError:
            raise ConnectionError("WebSocket accept timed out")

        async with self._lock:
            self._listeners.add(websocket)
        logger.info("Live listener connected", listeners=len(self._listeners))

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._listeners.discard(websocket)
        logger.info("Live listener disconnected", listeners=len(self._listeners))

    async def broadcast(self, message: dict[str, Any]) -> int:
        """
        Send a message to every listener connected right now.

        Sends run concurrently; one slow or dead listener does not delay
        the others beyond the send timeout.

        Returns:
            Number of listeners that received the message.
        """
        async with self._lock:
            listeners = list(self._listeners)

        if not listeners:
            return 0

        results = await asyncio.gather(
            *(self._send(ws, message) for ws in listeners),
            return_exceptions=True,
        )

        dead = [ws for ws, ok in zip(listeners, results) if ok is not True]
        if dead:
            async with self._lock:
                for ws in dead:
                    self._listeners.discard(ws)
            logger.info("Dropped unreachable live listeners", dropped=len(dead))

        return len(listeners) - len(dead)

    async def _send(self, ws: WebSocket, message: dict[str, Any]) -> bool:
        if not _is_ws_connected(ws):
            return False
        try:
            await asyncio.wait_for(ws.send_json(message), timeout=self._send_timeout)
            return True
        except Exception as e:
            logger.warning("Failed to send to live listener", error=str(e))
            return False

    async def close_all(self) -> None:
        """Close every listener. New connections are refused afterwards."""
        self._shutdown = True
        async with self._lock:
            listeners = list(self._listeners)
            self._listeners.clear()

        for ws in listeners:
            try:
                if _is_ws_connected(ws):
                    await ws.close(code=CLOSE_GOING_AWAY, reason="Server shutting down")
            except Exception as e:
                logger.debug("Error closing live listener", error=str(e))

        if listeners:
            logger.info("Closed live listeners", count=len(listeners))
