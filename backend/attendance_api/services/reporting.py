from __future__ import annotations

import calendar
import datetime as dt
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from sqlalchemy import Select, distinct, func, select
from sqlalchemy.orm import Session

from attendance_api.core.settings import settings
from attendance_api.models.attendance import AttendanceSession, AttendanceSummary
from attendance_api.models.checkin import Checkin
from attendance_api.models.enums import CheckinAction
from attendance_api.models.time_settings import UserTimeSettings
from attendance_api.models.user import UserInfo
from attendance_api.services.summary import SummaryValues, get_summary


@dataclass
class DailySessions:
    date: dt.date
    sessions: List[AttendanceSession]
    summary: SummaryValues


@dataclass
class DayStat:
    date: dt.date
    first_checkin_time: Optional[dt.datetime]
    last_checkout_time: Optional[dt.datetime]
    total_work_minutes: int
    total_sessions: int
    is_complete: bool
    is_late: bool
    is_early_leave: bool


@dataclass
class MonthlyStats:
    year: int
    month: int
    on_duty_time: dt.time
    off_duty_time: dt.time
    days: List[DayStat] = field(default_factory=list)
    attendance_days: int = 0
    late_count: int = 0
    early_leave_count: int = 0
    total_work_minutes: int = 0


EMPTY_SUMMARY = SummaryValues(
    first_checkin_time=None,
    last_checkout_time=None,
    total_work_minutes=0,
    total_sessions=0,
    is_complete=False,
)


def daily_sessions(db: Session, user_id: str, date: dt.date) -> DailySessions:
    sessions = list(
        db.scalars(
            select(AttendanceSession)
            .where(AttendanceSession.user_id == user_id, AttendanceSession.date == date)
            .order_by(AttendanceSession.session_number.asc())
        ).all()
    )
    row = get_summary(db, user_id, date)
    if row is None:
        summary = EMPTY_SUMMARY
    else:
        summary = SummaryValues(
            first_checkin_time=row.first_checkin_time,
            last_checkout_time=row.last_checkout_time,
            total_work_minutes=row.total_work_minutes,
            total_sessions=row.total_sessions,
            is_complete=row.is_complete,
        )
    return DailySessions(date=date, sessions=sessions, summary=summary)


def shift_window(db: Session, user_id: str) -> Tuple[dt.time, dt.time]:
    """On/off-duty times for lateness checks, falling back when none are stored."""
    row = db.scalar(select(UserTimeSettings).where(UserTimeSettings.user_id == user_id))
    if row is None:
        return settings.late_fallback_on_duty_time, settings.late_fallback_off_duty_time
    return row.on_duty_time, row.off_duty_time


def _time_of_day(instant: dt.datetime) -> dt.time:
    return instant.astimezone(dt.timezone.utc).time().replace(tzinfo=None)


def monthly_stats(db: Session, user_id: str, year: int, month: int) -> MonthlyStats:
    if not 1 <= month <= 12:
        raise ValueError(f"month must be 1..12, got {month}")
    first_day = dt.date(year, month, 1)
    last_day = dt.date(year, month, calendar.monthrange(year, month)[1])
    on_duty, off_duty = shift_window(db, user_id)

    rows = db.scalars(
        select(AttendanceSummary)
        .where(
            AttendanceSummary.user_id == user_id,
            AttendanceSummary.date >= first_day,
            AttendanceSummary.date <= last_day,
        )
        .order_by(AttendanceSummary.date.asc())
    ).all()

    stats = MonthlyStats(year=year, month=month, on_duty_time=on_duty, off_duty_time=off_duty)
    for row in rows:
        is_late = row.first_checkin_time is not None and _time_of_day(row.first_checkin_time) > on_duty
        is_early_leave = (
            row.last_checkout_time is not None and _time_of_day(row.last_checkout_time) < off_duty
        )
        stats.days.append(
            DayStat(
                date=row.date,
                first_checkin_time=row.first_checkin_time,
                last_checkout_time=row.last_checkout_time,
                total_work_minutes=row.total_work_minutes,
                total_sessions=row.total_sessions,
                is_complete=row.is_complete,
                is_late=is_late,
                is_early_leave=is_early_leave,
            )
        )
        stats.attendance_days += 1
        stats.late_count += int(is_late)
        stats.early_leave_count += int(is_early_leave)
        stats.total_work_minutes += row.total_work_minutes
    return stats


@dataclass
class CheckinFilter:
    """Query parameters for listing events, turned into bound SQL conditions."""

    user_id: Optional[str] = None
    action: Optional[CheckinAction] = None
    date_from: Optional[dt.date] = None
    date_to: Optional[dt.date] = None
    department: Optional[int] = None
    limit: int = 100
    offset: int = 0

    def apply(self, stmt: Select) -> Select:
        if self.user_id:
            stmt = stmt.where(Checkin.user_id == self.user_id)
        if self.action is not None:
            stmt = stmt.where(Checkin.action == self.action)
        if self.date_from is not None:
            stmt = stmt.where(Checkin.created_at >= _start_of(self.date_from))
        if self.date_to is not None:
            stmt = stmt.where(Checkin.created_at < _start_of(self.date_to + dt.timedelta(days=1)))
        if self.department is not None:
            stmt = stmt.join(UserInfo, UserInfo.user_id == Checkin.user_id).where(
                UserInfo.department == self.department
            )
        return stmt

    def statement(self) -> Select:
        stmt = self.apply(select(Checkin))
        return (
            stmt.order_by(Checkin.created_at.desc(), Checkin.id.desc())
            .limit(max(1, min(self.limit, 1000)))
            .offset(max(0, self.offset))
        )


def _start_of(day: dt.date) -> dt.datetime:
    return dt.datetime.combine(day, dt.time.min, tzinfo=dt.timezone.utc)


def list_checkins(db: Session, checkin_filter: CheckinFilter) -> List[Checkin]:
    return list(db.scalars(checkin_filter.statement()).all())


@dataclass
class UserAttendanceStat:
    user_id: str
    user_name: Optional[str]
    total_days: int
    total_hours: float
    last_checkout_time: Optional[dt.datetime]


@dataclass
class DepartmentStat:
    department: int
    department_name: Optional[str]
    user_count: int
    total_attendance_days: int
    avg_work_hours: float
    users: List[UserAttendanceStat] = field(default_factory=list)


def _hours(minutes) -> float:
    return round(float(minutes or 0) / 60.0, 2)


def department_stats(db: Session, department: Optional[int] = None) -> List[DepartmentStat]:
    """Attendance totals per department with a row per user.

    ``avg_work_hours`` averages over the department's summary rows; users with
    no attendance still count towards ``user_count``.
    """
    joined = AttendanceSummary.user_id == UserInfo.user_id
    dept_stmt = (
        select(
            UserInfo.department,
            UserInfo.department_name,
            func.count(distinct(UserInfo.user_id)),
            func.count(distinct(AttendanceSummary.date)),
            func.avg(AttendanceSummary.total_work_minutes),
        )
        .outerjoin(AttendanceSummary, joined)
        .group_by(UserInfo.department, UserInfo.department_name)
        .order_by(UserInfo.department)
    )
    user_stmt = (
        select(
            UserInfo.department,
            UserInfo.user_id,
            UserInfo.user_name,
            func.count(distinct(AttendanceSummary.date)),
            func.sum(AttendanceSummary.total_work_minutes),
            func.max(AttendanceSummary.last_checkout_time),
        )
        .outerjoin(AttendanceSummary, joined)
        .group_by(UserInfo.department, UserInfo.user_id, UserInfo.user_name)
        .order_by(UserInfo.user_id)
    )
    if department is not None:
        dept_stmt = dept_stmt.where(UserInfo.department == department)
        user_stmt = user_stmt.where(UserInfo.department == department)

    users_by_department: Dict[int, List[UserAttendanceStat]] = {}
    for dept, user_id, user_name, days, minutes, last_checkout in db.execute(user_stmt).all():
        users_by_department.setdefault(dept, []).append(
            UserAttendanceStat(
                user_id=user_id,
                user_name=user_name,
                total_days=int(days or 0),
                total_hours=_hours(minutes),
                last_checkout_time=last_checkout,
            )
        )

    return [
        DepartmentStat(
            department=dept,
            department_name=name,
            user_count=int(user_count or 0),
            total_attendance_days=int(days or 0),
            avg_work_hours=_hours(avg_minutes),
            users=users_by_department.get(dept, []),
        )
        for dept, name, user_count, days, avg_minutes in db.execute(dept_stmt).all()
    ]
