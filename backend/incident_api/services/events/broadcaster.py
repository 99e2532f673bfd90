"""
Event broadcaster for report lifecycle events.
"""

from typing import Any

from fastapi.encoders import jsonable_encoder

from incident_shared.config.logging import get_logger
from incident_api.services.events.hub import LiveListenerHub

logger = get_logger(__name__)


class EventBroadcaster:
    """
    Publishes report events to live listeners.

    Each listener receives ``{"event": topic, "data": payload}``.

    Usage:
        broadcaster = EventBroadcaster(hub)
        await broadcaster.publish(Topics.NEW_REPORT, report_output)
    """

    def __init__(self, hub: LiveListenerHub):
        self._hub = hub

    async def publish(self, topic: str, payload: Any) -> int:
        """
        Fire-and-forget publish.

        Returns:
            Number of listeners that received the event.
        """
        message = {"event": topic, "data": jsonable_encoder(payload)}
        delivered = await self._hub.broadcast(message)
        logger.info("Event published", topic=topic, delivered=delivered)
        return delivered
