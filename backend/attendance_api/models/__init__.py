"""Import all models so SQLAlchemy metadata is fully registered."""

from attendance_api.db.base import Base

from attendance_api.models.admin_token import AdminToken
from attendance_api.models.attendance import AttendanceSession, AttendanceSummary
from attendance_api.models.checkin import Checkin
from attendance_api.models.enums import AdminRole, CheckinAction, SyncAction
from attendance_api.models.time_settings import UserTimeSettings
from attendance_api.models.user import AdminUser, UserInfo

__all__ = [
    "Base",
    "AdminRole",
    "AdminToken",
    "AdminUser",
    "AttendanceSession",
    "AttendanceSummary",
    "Checkin",
    "CheckinAction",
    "SyncAction",
    "UserInfo",
    "UserTimeSettings",
]
