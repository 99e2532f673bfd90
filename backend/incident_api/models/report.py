"""
Report model.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, Index, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BigIntPK, utcnow


class Report(Base):
    """
    An incident report filed by a citizen or an administrator.

    reporter_id points into app_user or admin depending on reporter_type,
    so it carries no foreign key. Reports are never deleted.
    """

    __tablename__ = "report"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    reporter_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    reporter_type: Mapped[str] = mapped_column(Text, nullable=False)  # user, admin
    address: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[str] = mapped_column(Text, nullable=False, default="-")
    category: Mapped[str] = mapped_column(Text, nullable=False)
    is_sirine: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending", index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )

    __table_args__ = (
        Index("ix_report_reporter", "reporter_type", "reporter_id"),
        Index("ix_report_address", "address"),
    )

    def __repr__(self) -> str:
        return f"<Report(id={self.id}, category='{self.category}', status='{self.status}')>"
