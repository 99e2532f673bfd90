"""
Device Registry.

Holds one push token per administrator (last write wins). Tokens are
probed through the push sender before they are stored, and removed when
the provider reports them permanently invalid or the administrator logs
out.
"""

from __future__ import annotations

import asyncio
from typing import NamedTuple

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from incident_shared.config.constants import PushText
from incident_shared.config.logging import get_logger, mask_token
from incident_shared.infrastructure.db import get_db_context, safe_commit
from incident_shared.utils.exceptions import (
    InvalidPushTokenError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from incident_api.models import Admin, AdminSession, DeviceRegistration, utcnow
from incident_api.services.push.messages import DeviceTarget, SendStatus, build_probe_message
from incident_api.services.push.sender import PushSender
from incident_api.services.registry.sessions import SessionInfo, SessionRegistry

logger = get_logger(__name__)


class HygieneSummary(NamedTuple):
    valid: int
    invalid: int


class DeviceRegistry:
    """
    Registry of administrator device tokens.

    Usage:
        devices = DeviceRegistry(SessionLocal, sender, sessions)
        session = await devices.register(admin_id, token)
        devices.remove(admin_id)
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        sender: PushSender,
        sessions: SessionRegistry,
        probe_ttl_seconds: int = 60,
        hygiene_ttl_seconds: int = 30,
    ):
        self._session_factory = session_factory
        self._sender = sender
        self._sessions = sessions
        self._probe_ttl = probe_ttl_seconds
        self._hygiene_ttl = hygiene_ttl_seconds

    async def register(self, admin_id: int, push_token: str | None) -> SessionInfo:
        """
        Probe, then store ``push_token`` for ``admin_id`` and issue a new session.

        Only a permanently invalid token blocks registration; any other
        probe failure is logged and the token is stored anyway.

        Raises:
            ValidationError: If the token is missing or the provider rejects it.
            NotFoundError: If the administrator does not exist.
        """
        if not push_token:
            raise ValidationError("push_token is required", admin_id=admin_id)

        if not await asyncio.to_thread(self._admin_exists, admin_id):
            raise NotFoundError("Admin", admin_id)

        probe = build_probe_message(PushText.PROBE_REGISTERED, self._probe_ttl)
        result = await self._sender.send(push_token, probe)

        if result.status is SendStatus.INVALID_TOKEN:
            raise InvalidPushTokenError(admin_id=admin_id, token=mask_token(push_token), error=result.error)
        if result.status is SendStatus.FAILED:
            logger.warning(
                "Push token probe failed, registering anyway",
                admin_id=admin_id,
                token=mask_token(push_token),
                error=result.error,
            )

        await asyncio.to_thread(self._store, admin_id, push_token)
        session = await asyncio.to_thread(self._sessions.register, admin_id)

        logger.info(
            "Push token registered",
            admin_id=admin_id,
            token=mask_token(push_token),
            session_id=session.session_id,
        )
        return session

    def _admin_exists(self, admin_id: int) -> bool:
        with get_db_context(self._session_factory) as db:
            return db.get(Admin, admin_id) is not None

    def _store(self, admin_id: int, push_token: str) -> None:
        try:
            with get_db_context(self._session_factory) as db:
                row = db.get(DeviceRegistration, admin_id)
                if row is None:
                    row = DeviceRegistration(admin_id=admin_id)
                    db.add(row)
                row.push_token = push_token
                row.registered_at = utcnow()
                safe_commit(db)
        except SQLAlchemyError as e:
            raise PersistenceError("store push token", admin_id=admin_id, error=str(e))

    def remove(self, admin_id: int, only_if_token: str | None = None) -> bool:
        """
        Clear the stored token of ``admin_id``.

        With ``only_if_token`` the row is removed only while it still holds
        that token, so a re-registration that raced a failed send survives.

        Returns:
            True when a registration was removed.
        """
        stmt = delete(DeviceRegistration).where(DeviceRegistration.admin_id == admin_id)
        if only_if_token is not None:
            stmt = stmt.where(DeviceRegistration.push_token == only_if_token)

        try:
            with get_db_context(self._session_factory) as db:
                result = db.execute(stmt)
                safe_commit(db)
                removed = (result.rowcount or 0) > 0
        except SQLAlchemyError as e:
            raise PersistenceError("remove push token", admin_id=admin_id, error=str(e))

        if removed:
            logger.info("Push token removed", admin_id=admin_id)
        return removed

    def get(self, admin_id: int) -> str | None:
        with get_db_context(self._session_factory) as db:
            row = db.get(DeviceRegistration, admin_id)
            return row.push_token if row else None

    def snapshot(self) -> list[DeviceTarget]:
        """Every current registration with the administrator's session id, if any."""
        stmt = (
            select(DeviceRegistration.admin_id, DeviceRegistration.push_token, AdminSession.session_id)
            .outerjoin(AdminSession, AdminSession.admin_id == DeviceRegistration.admin_id)
            .order_by(DeviceRegistration.admin_id)
        )
        with get_db_context(self._session_factory) as db:
            return [
                DeviceTarget(admin_id=admin_id, push_token=token, session_id=session_id)
                for admin_id, token, session_id in db.execute(stmt)
            ]

    async def validate_all(self) -> HygieneSummary:
        """
        Probe every stored token and drop the ones the provider rejects.

        Tokens whose probe fails for any other reason are neither counted
        nor touched.
        """
        valid = 0
        invalid = 0

        for target in await asyncio.to_thread(self.snapshot):
            probe = build_probe_message(PushText.PROBE_HYGIENE, self._hygiene_ttl)
            result = await self._sender.send(target.push_token, probe)

            if result.status is SendStatus.DELIVERED:
                valid += 1
            elif result.status is SendStatus.INVALID_TOKEN:
                await asyncio.to_thread(self.remove, target.admin_id, only_if_token=target.push_token)
                invalid += 1
            else:
                logger.warning("Push token probe failed", admin_id=target.admin_id, error=result.error)

        logger.info("Push token validation complete", valid=valid, invalid_removed=invalid)
        return HygieneSummary(valid=valid, invalid=invalid)
