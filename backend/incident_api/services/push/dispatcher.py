"""
Push Dispatcher.

Fans one notification out to every registered administrator device.

Every send is issued without waiting for the others (bounded by a
semaphore) and the dispatcher waits for all of them to settle. One device
failing, raising or hanging until its own timeout never affects delivery
to the rest. A device whose token the provider reports permanently
invalid is removed from the registry, so the next broadcast skips it.

Registry queries run in worker threads; the event loop only awaits them.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Callable

from incident_shared.config.logging import get_logger, mask_token
from incident_api.services.push.messages import (
    DeviceOutcome,
    DeviceTarget,
    DispatchReport,
    PushMessage,
    ReportAlert,
    SendStatus,
    build_alert_message,
    build_test_message,
)
from incident_api.services.push.sender import PushSender

if TYPE_CHECKING:
    from incident_api.services.registry.devices import DeviceRegistry

logger = get_logger(__name__)

MessageBuilder = Callable[[DeviceTarget], PushMessage]


class PushDispatcher:
    """
    Usage:
        dispatcher = PushDispatcher(devices, sender, max_concurrency=10)
        report = await dispatcher.broadcast(alert)
        report.attempted == report.succeeded + report.failed
    """

    def __init__(
        self,
        devices: DeviceRegistry,
        sender: PushSender,
        max_concurrency: int = 10,
        alert_ttl_seconds: int = 15,
        alert_expiry_seconds: int = 30,
        test_ttl_seconds: int = 15,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._devices = devices
        self._sender = sender
        self._max_concurrency = max_concurrency
        self._alert_ttl = alert_ttl_seconds
        self._alert_expiry = alert_expiry_seconds
        self._test_ttl = test_ttl_seconds

    async def broadcast(self, alert: ReportAlert) -> DispatchReport:
        """Send a new-report alert to every registered device."""

        def build(target: DeviceTarget) -> PushMessage:
            return build_alert_message(
                alert,
                session_id=target.session_id,
                ttl_seconds=self._alert_ttl,
                expiry_seconds=self._alert_expiry,
            )

        report = await self._fan_out(build, remove_invalid=True)
        logger.info(
            "Report alert dispatched",
            report_id=alert.report_id,
            attempted=report.attempted,
            succeeded=report.succeeded,
            failed=report.failed,
            removed=report.removed,
            duration_ms=report.duration_ms,
        )
        return report

    async def send_test(self, text: str) -> DispatchReport:
        """
        Send a visible test notification to every registered device.

        Diagnostic only: registrations are never removed here.
        """

        def build(target: DeviceTarget) -> PushMessage:
            return build_test_message(text, target.admin_id, self._test_ttl)

        report = await self._fan_out(build, remove_invalid=False)
        logger.info(
            "Test notification dispatched",
            attempted=report.attempted,
            succeeded=report.succeeded,
            duration_ms=report.duration_ms,
        )
        return report

    async def _fan_out(self, build: MessageBuilder, remove_invalid: bool) -> DispatchReport:
        start = time.perf_counter()
        targets = await asyncio.to_thread(self._devices.snapshot)

        if not targets:
            logger.info("No registered devices to notify")
            return DispatchReport(duration_ms=int((time.perf_counter() - start) * 1000))

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def deliver(target: DeviceTarget) -> DeviceOutcome:
            async with semaphore:
                result = await self._sender.send(target.push_token, build(target))

            outcome = DeviceOutcome(
                admin_id=target.admin_id,
                status=result.status,
                duration_ms=result.duration_ms,
                message_id=result.message_id,
                error=result.error,
            )
            if remove_invalid and result.status is SendStatus.INVALID_TOKEN:
                outcome.removed = await self._remove(target)
            return outcome

        results = await asyncio.gather(*(deliver(t) for t in targets), return_exceptions=True)

        report = DispatchReport(attempted=len(targets))
        for target, result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Push delivery raised",
                    admin_id=target.admin_id,
                    error_type=type(result).__name__,
                    error=str(result),
                )
                result = DeviceOutcome(
                    admin_id=target.admin_id,
                    status=SendStatus.FAILED,
                    duration_ms=0,
                    error=str(result) or type(result).__name__,
                )

            report.outcomes.append(result)
            if result.success:
                report.succeeded += 1
            else:
                report.failed += 1
            logger.debug(
                "Push delivery outcome",
                admin_id=result.admin_id,
                status=result.status.value,
                duration_ms=result.duration_ms,
            )

        report.duration_ms = int((time.perf_counter() - start) * 1000)
        return report

    async def _remove(self, target: DeviceTarget) -> bool:
        try:
            removed = await asyncio.to_thread(
                self._devices.remove, target.admin_id, only_if_token=target.push_token
            )
        except Exception as e:
            logger.error("Failed to remove invalid push token", admin_id=target.admin_id, error=str(e))
            return False

        if removed:
            logger.info(
                "Removed invalid push token",
                admin_id=target.admin_id,
                token=mask_token(target.push_token),
            )
        return removed
