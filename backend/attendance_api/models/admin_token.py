"""Issued admin bearer tokens, keyed by JWT id."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from attendance_api.db.base import Base, IDMixin, UTCDateTime


class AdminToken(IDMixin, Base):
    __tablename__ = "admin_tokens"

    jti: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    admin_user_id: Mapped[int] = mapped_column(ForeignKey("admin_users.id", ondelete="CASCADE"), nullable=False)
    issued_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    revoked_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    admin_user: Mapped["AdminUser"] = relationship()

    __table_args__ = (
        Index("ix_admin_tokens_expires_at", "expires_at"),
    )
