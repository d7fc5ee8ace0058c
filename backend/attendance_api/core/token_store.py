"""Admin bearer token store.

Tokens are JWTs carrying a ``jti``; the store persists one row per issued
token so logout and expiry work across every worker sharing the database.
"""

from __future__ import annotations

import abc
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from jose import JWTError
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from attendance_api.core.security import create_access_token, decode_token
from attendance_api.models.admin_token import AdminToken
from attendance_api.models.user import AdminUser

logger = logging.getLogger("attendance.tokens")


@dataclass(frozen=True)
class IssuedToken:
    access_token: str
    jti: str
    expires_at: datetime


class TokenStore(abc.ABC):
    @abc.abstractmethod
    def issue(self, admin: AdminUser) -> IssuedToken:
        ...

    @abc.abstractmethod
    def validate(self, token: str) -> Optional[int]:
        """Return the admin user id for a live token, ``None`` otherwise."""

    @abc.abstractmethod
    def revoke(self, token: str) -> bool:
        ...

    @abc.abstractmethod
    def cleanup_expired(self) -> int:
        ...


class DatabaseTokenStore(TokenStore):
    def __init__(self, db: Session) -> None:
        self.db = db

    def issue(self, admin: AdminUser) -> IssuedToken:
        token, jti, expires_at = create_access_token(
            {"sub": str(admin.id), "role": admin.role.value}
        )
        self.db.add(
            AdminToken(
                jti=jti,
                admin_user_id=admin.id,
                issued_at=datetime.now(timezone.utc),
                expires_at=expires_at,
            )
        )
        self.db.flush()
        return IssuedToken(access_token=token, jti=jti, expires_at=expires_at)

    def _lookup(self, token: str) -> tuple[Optional[dict], Optional[AdminToken]]:
        try:
            payload = decode_token(token)
        except JWTError:
            return None, None
        jti = payload.get("jti")
        if not jti:
            return payload, None
        row = self.db.scalar(select(AdminToken).where(AdminToken.jti == jti))
        return payload, row

    def validate(self, token: str) -> Optional[int]:
        payload, row = self._lookup(token)
        if payload is None or row is None:
            return None
        if row.revoked_at is not None:
            return None
        if row.expires_at <= datetime.now(timezone.utc):
            return None
        try:
            admin_id = int(payload.get("sub"))
        except (TypeError, ValueError):
            return None
        if admin_id != row.admin_user_id:
            return None
        return admin_id

    def revoke(self, token: str) -> bool:
        _, row = self._lookup(token)
        if row is None:
            return False
        if row.revoked_at is None:
            row.revoked_at = datetime.now(timezone.utc)
            self.db.flush()
        return True

    def cleanup_expired(self) -> int:
        """Remove expired token rows. Returns number of rows deleted."""
        now = datetime.now(timezone.utc)
        result = self.db.execute(delete(AdminToken).where(AdminToken.expires_at <= now))
        self.db.flush()
        return result.rowcount or 0


def purge_expired_tokens(session_factory: Callable[[], Session]) -> Optional[int]:
    """Delete expired token rows in their own transaction; ``None`` if it failed."""
    with session_factory() as db:
        try:
            removed = DatabaseTokenStore(db).cleanup_expired()
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("token_cleanup_failed")
            return None
    if removed:
        logger.info("Removed %d expired admin tokens", removed)
    return removed
