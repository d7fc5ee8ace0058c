"""Checkin model: the append-only IN/OUT event log submitted by devices."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, Enum, Float, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from attendance_api.db.base import Base, IDMixin, UTCDateTime, utcnow
from attendance_api.models.enums import CheckinAction


class Checkin(IDMixin, Base):
    __tablename__ = "checkins"
    __table_args__ = (
        UniqueConstraint("user_id", "action", "created_at", name="uq_checkins_user_action_created_at"),
        Index("ix_checkins_user_created", "user_id", "created_at"),
    )

    user_id: Mapped[str] = mapped_column(String(255), ForeignKey("user_info.user_id"), nullable=False)
    action: Mapped[CheckinAction] = mapped_column(
        Enum(CheckinAction, name="checkin_action", native_enum=False, length=10),
        nullable=False,
    )
    # Device-side instant of the event
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    is_synced: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    received_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
