"""Attach checkouts to sessions that were opened earlier, possibly the day before."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from attendance_api.core.settings import settings
from attendance_api.models.attendance import AttendanceSession
from attendance_api.services.normalizer import Event

logger = logging.getLogger("attendance.matcher")


def session_window() -> dt.timedelta:
    return dt.timedelta(hours=settings.max_session_hours)


def duration_minutes(checkin_time: dt.datetime, checkout_time: dt.datetime) -> int:
    """Whole minutes between the two instants, rounded to nearest and never negative."""
    seconds = (checkout_time - checkin_time).total_seconds()
    if seconds <= 0:
        return 0
    # Half a minute rounds up.
    return int((seconds + 30) // 60)


def close_session(session: AttendanceSession, out_event: Event) -> AttendanceSession:
    session.checkout_time = out_event.timestamp
    session.checkout_latitude = out_event.latitude
    session.checkout_longitude = out_event.longitude
    session.checkout_location = out_event.location
    session.duration_minutes = duration_minutes(session.checkin_time, out_event.timestamp)
    session.is_complete = True
    return session


def within_window(session: AttendanceSession, instant: dt.datetime, window: Optional[dt.timedelta] = None) -> bool:
    """Whether an OUT at *instant* may still close *session*."""
    if window is None:
        window = session_window()
    return instant - session.checkin_time <= window


def latest_open_session(
    db: Session,
    user_id: str,
    date: dt.date,
    before: dt.datetime,
    window: Optional[dt.timedelta] = None,
) -> Optional[AttendanceSession]:
    """Latest still-open session on *date* whose check-in lies within *window* before *before*."""
    if window is None:
        window = session_window()
    stmt = (
        select(AttendanceSession)
        .where(
            AttendanceSession.user_id == user_id,
            AttendanceSession.date == date,
            AttendanceSession.checkout_time.is_(None),
            AttendanceSession.checkin_time < before,
            AttendanceSession.checkin_time >= before - window,
        )
        .order_by(AttendanceSession.checkin_time.desc(), AttendanceSession.session_number.desc())
        .limit(1)
        .execution_options(populate_existing=True)
    )
    return db.scalars(stmt).first()


def find_carryover(
    db: Session,
    user_id: str,
    date: dt.date,
    in_timestamp: dt.datetime,
    window: Optional[dt.timedelta] = None,
) -> Optional[AttendanceSession]:
    return latest_open_session(db, user_id, date - dt.timedelta(days=1), in_timestamp, window)


def resolve_checkout(
    db: Session,
    user_id: str,
    date: dt.date,
    out_event: Event,
    window: Optional[dt.timedelta] = None,
) -> Optional[AttendanceSession]:
    """Close the open session an unmatched OUT belongs to.

    Stored sessions of *date* are tried first, then those of the previous day.
    Returns the closed session, or ``None`` when the OUT matches nothing.
    """
    for candidate_date in (date, date - dt.timedelta(days=1)):
        session = latest_open_session(db, user_id, candidate_date, out_event.timestamp, window)
        if session is None:
            continue
        close_session(session, out_event)
        db.flush()
        if candidate_date != date:
            logger.info(
                "checkout_closed_previous_day_session",
                extra={
                    "user_id": user_id,
                    "date": candidate_date.isoformat(),
                    "session_number": session.session_number,
                },
            )
        return session
    return None
