from __future__ import annotations

from datetime import time

from sqlalchemy import ForeignKey, String, Time
from sqlalchemy.orm import Mapped, mapped_column, relationship

from attendance_api.db.base import Base, IDMixin, TimestampMixin


class UserTimeSettings(IDMixin, TimestampMixin, Base):
    """Per-user shift window, used by reporting for late / early-leave flags."""

    __tablename__ = "user_time_settings"

    user_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("user_info.user_id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )
    on_duty_time: Mapped[time] = mapped_column(Time, nullable=False)
    off_duty_time: Mapped[time] = mapped_column(Time, nullable=False)

    user: Mapped["UserInfo"] = relationship(back_populates="time_settings")
