from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from attendance_api.db.base import utcnow
from attendance_api.db.upsert import upsert_insert
from attendance_api.models.attendance import AttendanceSession, AttendanceSummary


@dataclass(frozen=True)
class SummaryValues:
    first_checkin_time: Optional[dt.datetime]
    last_checkout_time: Optional[dt.datetime]
    total_work_minutes: int
    total_sessions: int
    is_complete: bool


def summarize_sessions(sessions: Iterable[AttendanceSession]) -> Optional[SummaryValues]:
    """Aggregate one day's sessions; ``None`` when there are none."""
    sessions = list(sessions)
    if not sessions:
        return None

    checkouts = [s.checkout_time for s in sessions if s.checkout_time is not None]
    return SummaryValues(
        first_checkin_time=min(s.checkin_time for s in sessions),
        last_checkout_time=max(checkouts) if checkouts else None,
        total_work_minutes=sum(s.duration_minutes or 0 for s in sessions),
        total_sessions=len(sessions),
        is_complete=all(s.is_complete for s in sessions),
    )


def recompute_summary(db: Session, user_id: str, date: dt.date) -> Optional[AttendanceSummary]:
    """Rewrite the (user, date) summary from its sessions inside the caller's transaction."""
    db.flush()
    sessions = db.scalars(
        select(AttendanceSession).where(
            AttendanceSession.user_id == user_id,
            AttendanceSession.date == date,
        )
    ).all()
    values = summarize_sessions(sessions)

    if values is None:
        db.execute(
            delete(AttendanceSummary).where(
                AttendanceSummary.user_id == user_id,
                AttendanceSummary.date == date,
            )
        )
        return None

    now = utcnow()
    row = {
        "first_checkin_time": values.first_checkin_time,
        "last_checkout_time": values.last_checkout_time,
        "total_work_minutes": values.total_work_minutes,
        "total_sessions": values.total_sessions,
        "is_complete": values.is_complete,
        "updated_at": now,
    }
    stmt = upsert_insert(db, AttendanceSummary.__table__).values(user_id=user_id, date=date, **row)
    stmt = stmt.on_conflict_do_update(index_elements=["user_id", "date"], set_=row)
    db.execute(stmt)

    return db.scalars(
        select(AttendanceSummary)
        .where(AttendanceSummary.user_id == user_id, AttendanceSummary.date == date)
        .execution_options(populate_existing=True)
    ).first()


def get_summary(db: Session, user_id: str, date: dt.date) -> Optional[AttendanceSummary]:
    return db.scalars(
        select(AttendanceSummary).where(
            AttendanceSummary.user_id == user_id,
            AttendanceSummary.date == date,
        )
    ).first()
