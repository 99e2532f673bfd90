"""
Push delivery models: one device registration and one session per administrator.

Both tables are keyed by admin_id, so a second write for the same
administrator replaces the first.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, utcnow

if TYPE_CHECKING:
    from .principal import Admin


class DeviceRegistration(Base):
    """Push token of an administrator's device. Last write wins."""

    __tablename__ = "device_registration"

    admin_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("admin.id", ondelete="CASCADE"), primary_key=True
    )
    push_token: Mapped[str] = mapped_column(Text, nullable=False)
    registered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    admin: Mapped["Admin"] = relationship(back_populates="device")

    def __repr__(self) -> str:
        return f"<DeviceRegistration(admin_id={self.admin_id})>"


class AdminSession(Base):
    """
    Push-delivery session of an administrator.

    session_id is the only value accepted by session validation until the
    row is overwritten or swept.
    """

    __tablename__ = "admin_session"

    admin_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("admin.id", ondelete="CASCADE"), primary_key=True
    )
    session_id: Mapped[str] = mapped_column(Text, nullable=False)
    session_start: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )

    admin: Mapped["Admin"] = relationship(back_populates="session")

    def __repr__(self) -> str:
        return f"<AdminSession(admin_id={self.admin_id}, session_id='{self.session_id}')>"
