"""
Push-send capability.

Callers depend on the PushSender protocol only. The concrete sender is
chosen from settings: Firebase when credentials are configured, otherwise
a null sender that reports every send as failed.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from incident_shared.config.logging import get_logger, mask_token
from incident_api.services.push.messages import PushMessage, SendResult

logger = get_logger(__name__)

DISABLED_ERROR = "push delivery disabled"


@runtime_checkable
class PushSender(Protocol):
    async def send(self, token: str, message: PushMessage) -> SendResult:
        """Send one message to one device. Never raises for provider errors."""
        ...

    def close(self) -> None:
        ...


class NullPushSender:
    """
    Sender used when push delivery is not configured.

    Registration still succeeds because a failed probe is advisory, and
    broadcasts report every device as failed.
    """

    async def send(self, token: str, message: PushMessage) -> SendResult:
        logger.debug("Push delivery disabled, dropping message", token=mask_token(token))
        return SendResult.failed(DISABLED_ERROR)

    def close(self) -> None:
        pass


def build_push_sender(credentials_path: str, workers: int) -> PushSender:
    """Create the sender for the configured credentials."""
    if not credentials_path:
        logger.warning("FIREBASE_CREDENTIALS_PATH not set, push delivery disabled")
        return NullPushSender()

    from incident_api.services.push.firebase import FirebasePushSender

    return FirebasePushSender.from_credentials(credentials_path, workers=workers)
