"""
Session Registry.

One push-delivery session per administrator. A session ties an
administrator to the device registration it was issued with, so a device
holding a superseded session id can tell it has been replaced.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from incident_shared.config.logging import get_logger
from incident_shared.infrastructure.db import get_db_context, safe_commit
from incident_shared.utils.exceptions import PersistenceError
from incident_api.models import AdminSession, utcnow

logger = get_logger(__name__)


@dataclass(frozen=True)
class SessionInfo:
    admin_id: int
    session_id: str
    session_start: datetime


class SessionRegistry:
    """
    Stores the current session of each administrator.

    Opens its own short database sessions through ``session_factory`` so it
    can be called from fan-out tasks as well as from requests.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._clock = clock
        self._lock = threading.Lock()
        self._last_ns = 0

    def _next_session_id(self, admin_id: int) -> str:
        # Strictly increasing even when the clock does not advance between calls
        with self._lock:
            now_ns = max(time.time_ns(), self._last_ns + 1)
            self._last_ns = now_ns
        return f"session_{now_ns}_{admin_id}"

    def register(self, admin_id: int) -> SessionInfo:
        """Issue a fresh session for ``admin_id``, replacing any previous one."""
        session_id = self._next_session_id(admin_id)
        session_start = self._clock()

        try:
            with get_db_context(self._session_factory) as db:
                row = db.get(AdminSession, admin_id)
                if row is None:
                    row = AdminSession(admin_id=admin_id)
                    db.add(row)
                row.session_id = session_id
                row.session_start = session_start
                safe_commit(db)
        except SQLAlchemyError as e:
            raise PersistenceError("register session", admin_id=admin_id, error=str(e))

        logger.info("Session registered", admin_id=admin_id, session_id=session_id)
        return SessionInfo(admin_id=admin_id, session_id=session_id, session_start=session_start)

    def current(self, admin_id: int) -> SessionInfo | None:
        with get_db_context(self._session_factory) as db:
            row = db.get(AdminSession, admin_id)
            if row is None:
                return None
            return SessionInfo(
                admin_id=row.admin_id,
                session_id=row.session_id,
                session_start=row.session_start,
            )

    def validate(self, admin_id: int, candidate: str | None) -> bool:
        """True iff ``candidate`` is the session id currently stored for ``admin_id``."""
        current = self.current(admin_id)
        valid = current is not None and candidate is not None and current.session_id == candidate
        logger.info("Session validated", admin_id=admin_id, valid=valid)
        return valid

    def sweep(self, max_age: timedelta) -> int:
        """
        Clear every session started more than ``max_age`` ago.

        Returns:
            Number of sessions cleared.
        """
        cutoff = self._clock() - max_age
        try:
            with get_db_context(self._session_factory) as db:
                result = db.execute(delete(AdminSession).where(AdminSession.session_start < cutoff))
                safe_commit(db)
                cleared = result.rowcount or 0
        except SQLAlchemyError as e:
            raise PersistenceError("sweep sessions", error=str(e))

        logger.info("Stale sessions cleared", cleared=cleared, max_age_seconds=int(max_age.total_seconds()))
        return cleared

    def active_admin_ids(self) -> list[int]:
        with get_db_context(self._session_factory) as db:
            return list(db.scalars(select(AdminSession.admin_id).order_by(AdminSession.admin_id)))
