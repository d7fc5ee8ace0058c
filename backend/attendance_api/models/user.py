from __future__ import annotations

from typing import Optional

from sqlalchemy import Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from attendance_api.db.base import Base, IDMixin, TimestampMixin
from attendance_api.models.enums import AdminRole


class UserInfo(IDMixin, Base):
    """A field user whose devices submit check-in events."""

    __tablename__ = "user_info"

    user_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    user_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    department: Mapped[int] = mapped_column(Integer, nullable=False, default=99)
    department_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    passkey_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)

    time_settings: Mapped[Optional["UserTimeSettings"]] = relationship(
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )


class AdminUser(IDMixin, TimestampMixin, Base):
    __tablename__ = "admin_users"

    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[AdminRole] = mapped_column(
        Enum(AdminRole, name="admin_role", native_enum=False, length=20),
        nullable=False,
        default=AdminRole.DEPARTMENT,
    )
    department: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
