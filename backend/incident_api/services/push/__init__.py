"""
Push notifications: message types, senders and the fan-out dispatcher.

The Firebase sender is imported lazily by build_push_sender.
"""

from .messages import (
    SendStatus,
    SendResult,
    PushMessage,
    ReportAlert,
    DeviceTarget,
    DeviceOutcome,
    DispatchReport,
)
from .sender import PushSender, NullPushSender, build_push_sender
from .dispatcher import PushDispatcher

__all__ = [
    "SendStatus",
    "SendResult",
    "PushMessage",
    "ReportAlert",
    "DeviceTarget",
    "DeviceOutcome",
    "DispatchReport",
    "PushSender",
    "NullPushSender",
    "build_push_sender",
    "PushDispatcher",
]
