"""Reconstructed work sessions and the per-day summaries derived from them."""

from __future__ import annotations

import datetime as dt
from typing import Optional

from sqlalchemy import Boolean, Date, Float, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from attendance_api.db.base import Base, IDMixin, TimestampMixin, UTCDateTime, utcnow


class AttendanceSession(IDMixin, TimestampMixin, Base):
    __tablename__ = "attendance_sessions"
    __table_args__ = (
        UniqueConstraint("user_id", "date", "session_number", name="uq_attendance_sessions_user_date_number"),
        Index("ix_attendance_sessions_user_date", "user_id", "date"),
    )

    user_id: Mapped[str] = mapped_column(String(255), ForeignKey("user_info.user_id"), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    session_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    checkin_time: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False)
    checkout_time: Mapped[Optional[dt.datetime]] = mapped_column(UTCDateTime(), nullable=True)
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    checkin_latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    checkin_longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    checkout_latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    checkout_longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    checkin_location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    checkout_location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class AttendanceSummary(IDMixin, Base):
    __tablename__ = "attendance_summary"
    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_attendance_summary_user_date"),
    )

    user_id: Mapped[str] = mapped_column(String(255), ForeignKey("user_info.user_id"), nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    first_checkin_time: Mapped[Optional[dt.datetime]] = mapped_column(UTCDateTime(), nullable=True)
    last_checkout_time: Mapped[Optional[dt.datetime]] = mapped_column(UTCDateTime(), nullable=True)
    total_work_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_sessions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_complete: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow)
