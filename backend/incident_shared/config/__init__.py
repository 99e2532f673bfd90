"""
Configuration module: Settings, logging, constants.
"""

from incident_shared.config.settings import settings, DATABASE_URL
from incident_shared.config.logging import get_logger, setup_logging
from incident_shared.config.constants import (
    ReporterType,
    ReportStatus,
    Topics,
    PushMessageType,
    PushPriority,
    Limits,
)

__all__ = [
    # settings
    "settings",
    "DATABASE_URL",
    # logging
    "get_logger",
    "setup_logging",
    # constants
    "ReporterType",
    "ReportStatus",
    "Topics",
    "PushMessageType",
    "PushPriority",
    "Limits",
]
