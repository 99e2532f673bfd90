"""
Live event delivery: listener hub and report event broadcaster.
"""

from .hub import LiveListenerHub, CLOSE_UNAUTHORIZED
from .broadcaster import EventBroadcaster

__all__ = [
    "LiveListenerHub",
    "CLOSE_UNAUTHORIZED",
    "EventBroadcaster",
]
