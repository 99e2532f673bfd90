"""
Firebase Cloud Messaging sender.

firebase_admin.messaging.send is blocking, so every send runs on a
dedicated thread pool and the event loop stays free while it waits on
the provider.
"""

from __future__ import annotations

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from functools import partial

import firebase_admin
from firebase_admin import credentials, messaging
from firebase_admin import exceptions as firebase_exceptions

from incident_shared.config.logging import get_logger, mask_token
from incident_api.services.push.messages import PushMessage, SendResult, SendStatus

logger = get_logger(__name__)

APP_NAME = "incident-alerts"


def classify_error(exc: Exception) -> SendStatus:
    """
    Map a provider error to a send status.

    Only errors meaning the token will never accept delivery again are
    INVALID_TOKEN. Quota, availability and auth errors are FAILED.
    """
    if isinstance(exc, (messaging.UnregisteredError, messaging.SenderIdMismatchError)):
        return SendStatus.INVALID_TOKEN
    if isinstance(exc, firebase_exceptions.InvalidArgumentError):
        if "registration token" in str(exc).lower():
            return SendStatus.INVALID_TOKEN
    return SendStatus.FAILED


def to_fcm_message(token: str, message: PushMessage) -> messaging.Message:
    """Bind a PushMessage to a device token as an FCM message."""
    android_notification = None
    notification = None

    if message.has_notification:
        notification = messaging.Notification(title=message.title, body=message.body)
        android_notification = messaging.AndroidNotification(
            priority=message.notification_priority,
            default_sound=message.default_sound,
            default_vibrate_timings=message.default_vibrate_timings,
            sticky=message.sticky,
            local_only=message.local_only,
        )

    return messaging.Message(
        token=token,
        data=message.data,
        notification=notification,
        android=messaging.AndroidConfig(
            priority=message.priority,
            ttl=timedelta(seconds=message.ttl_seconds),
            direct_boot_ok=message.direct_boot_ok,
            notification=android_notification,
        ),
    )


class FirebasePushSender:
    """
    PushSender backed by firebase-admin.

    Usage:
        sender = FirebasePushSender.from_credentials("/etc/firebase.json")
        result = await sender.send(token, build_probe_message("hello", 60))
    """

    def __init__(self, app: firebase_admin.App | None = None, workers: int = 16):
        self._app = app
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="push-send")

    @classmethod
    def from_credentials(cls, path: str, workers: int = 16) -> "FirebasePushSender":
        try:
            app = firebase_admin.get_app(APP_NAME)
        except ValueError:
            app = firebase_admin.initialize_app(credentials.Certificate(path), name=APP_NAME)
        logger.info("Firebase messaging initialized", project_id=app.project_id, workers=workers)
        return cls(app, workers=workers)

    async def send(self, token: str, message: PushMessage) -> SendResult:
        start = time.perf_counter()
        loop = asyncio.get_running_loop()

        try:
            fcm_message = to_fcm_message(token, message)
            message_id = await loop.run_in_executor(
                self._executor, partial(messaging.send, fcm_message, app=self._app)
            )
        except Exception as e:
            duration_ms = int((time.perf_counter() - start) * 1000)
            status = classify_error(e)
            logger.warning(
                "Push send failed",
                token=mask_token(token),
                status=status.value,
                error_type=type(e).__name__,
                error=str(e),
                duration_ms=duration_ms,
            )
            if status is SendStatus.INVALID_TOKEN:
                return SendResult.invalid_token(str(e), duration_ms)
            return SendResult.failed(str(e), duration_ms)

        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.debug("Push sent", token=mask_token(token), message_id=message_id, duration_ms=duration_ms)
        return SendResult.delivered(message_id, duration_ms)

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
