"""Schemas for session, summary and monthly statistics endpoints."""

from __future__ import annotations

import datetime as dt
from typing import List, Optional

from pydantic import Field

from attendance_api.schemas.base import ORMModel
from attendance_api.schemas.sync import DeviceCredentials


class SessionRead(ORMModel):
    id: int
    user_id: str
    date: dt.date
    session_number: int
    checkin_time: dt.datetime
    checkout_time: Optional[dt.datetime] = None
    duration_minutes: Optional[int] = None
    checkin_latitude: Optional[float] = None
    checkin_longitude: Optional[float] = None
    checkout_latitude: Optional[float] = None
    checkout_longitude: Optional[float] = None
    checkin_location: Optional[str] = None
    checkout_location: Optional[str] = None
    is_complete: bool


class SummaryRead(ORMModel):
    first_checkin_time: Optional[dt.datetime] = None
    last_checkout_time: Optional[dt.datetime] = None
    total_work_minutes: int = 0
    total_sessions: int = 0
    is_complete: bool = False


class DailySessionsRequest(DeviceCredentials):
    date: dt.date


class DailySessionsResponse(ORMModel):
    date: dt.date
    sessions: List[SessionRead] = Field(default_factory=list)
    summary: SummaryRead


class MonthlyStatsRequest(DeviceCredentials):
    year: int = Field(..., ge=2000, le=2100)
    month: int = Field(..., ge=1, le=12)


class DayStatRead(SummaryRead):
    date: dt.date
    is_late: bool
    is_early_leave: bool


class MonthlyStatsResponse(ORMModel):
    year: int
    month: int
    on_duty_time: dt.time
    off_duty_time: dt.time
    days: List[DayStatRead] = Field(default_factory=list)
    attendance_days: int = 0
    late_count: int = 0
    early_leave_count: int = 0
    total_work_minutes: int = 0
