"""
SQLAlchemy ORM Models Package.

- base: Base class, BigIntPK, utcnow
- principal: User (citizen), Admin
- report: Report
- push: DeviceRegistration, AdminSession
"""

from .base import Base, BigIntPK, utcnow
from .principal import User, Admin
from .report import Report
from .push import DeviceRegistration, AdminSession

__all__ = [
    "Base",
    "BigIntPK",
    "utcnow",
    "User",
    "Admin",
    "Report",
    "DeviceRegistration",
    "AdminSession",
]
