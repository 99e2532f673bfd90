"""
Administrator push-delivery state: sessions and device registrations.
"""

from .sessions import SessionInfo, SessionRegistry
from .devices import DeviceRegistry, HygieneSummary

__all__ = [
    "SessionInfo",
    "SessionRegistry",
    "DeviceRegistry",
    "HygieneSummary",
]
