from __future__ import annotations

import datetime as dt
from typing import List, Optional

from pydantic import AwareDatetime, ConfigDict, Field

from attendance_api.models.enums import CheckinAction
from attendance_api.schemas.base import ORMModel
from attendance_api.schemas.sync import CheckinEventIn


class AdminCheckinCreate(CheckinEventIn):
    user_id: str = Field(..., min_length=1, max_length=255)


class SessionUpdate(ORMModel):
    model_config = ConfigDict(extra="forbid")

    checkin_time: Optional[AwareDatetime] = None
    checkout_time: Optional[AwareDatetime] = None
    checkin_latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    checkin_longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    checkout_latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    checkout_longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    checkin_location: Optional[str] = Field(default=None, max_length=255)
    checkout_location: Optional[str] = Field(default=None, max_length=255)


class CheckinUpdate(ORMModel):
    model_config = ConfigDict(extra="forbid")

    action: Optional[CheckinAction] = None
    created_at: Optional[AwareDatetime] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)


class SummaryRecomputeRequest(ORMModel):
    user_id: str = Field(..., min_length=1, max_length=255)
    date: dt.date


class TimeSettingsStatusRead(ORMModel):
    total_users: int
    users_with_time_settings: int
    missing_count: int
    is_synced: bool


class TimeSettingsSyncResponse(ORMModel):
    created: int
    status: TimeSettingsStatusRead


class UserTimeSettingRead(ORMModel):
    user_id: str
    user_name: Optional[str] = None
    department: int
    department_name: Optional[str] = None
    on_duty_time: Optional[dt.time] = None
    off_duty_time: Optional[dt.time] = None


class TimeSettingUpdate(ORMModel):
    user_id: str = Field(..., min_length=1, max_length=255)
    on_duty_time: dt.time
    off_duty_time: dt.time


class TimeSettingsBatchUpdate(ORMModel):
    settings: List[TimeSettingUpdate] = Field(..., min_length=1, max_length=1000)


class TimeSettingsBatchResponse(ORMModel):
    updated: int


class UserAttendanceStatRead(ORMModel):
    user_id: str
    user_name: Optional[str] = None
    total_days: int
    total_hours: float
    last_checkout_time: Optional[dt.datetime] = None


class DepartmentStatRead(ORMModel):
    department: int
    department_name: Optional[str] = None
    user_count: int
    total_attendance_days: int
    avg_work_hours: float
    users: List[UserAttendanceStatRead] = Field(default_factory=list)


class DepartmentStatsResponse(ORMModel):
    departments: List[DepartmentStatRead] = Field(default_factory=list)
