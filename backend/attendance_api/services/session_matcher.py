"""Per-user, per-day IN/OUT state machine that turns events into sessions.

Each day group starts with no open session and a counter seeded from the
highest stored ``session_number``. Transitions:

* IN with nothing open: opens session ``n + 1``, unless a session from the
  previous day is still open inside the session window. That IN is rejected
  and the carried-over session becomes the open one.
* IN while open: ignored.
* OUT while open: closes the open session if the OUT is still inside the
  session window, otherwise it is handled as if nothing were open.
* OUT with nothing open: handed to the day-boundary resolver; if nothing
  can be closed an orphan session (check-in == check-out) is recorded.

Every session write recomputes the summary of the day it belongs to.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence, Set

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from attendance_api.core.errors import SessionSlotConflict
from attendance_api.db.base import utcnow
from attendance_api.db.upsert import upsert_insert
from attendance_api.models.attendance import AttendanceSession
from attendance_api.models.enums import CheckinAction
from attendance_api.services import day_boundary
from attendance_api.services.normalizer import Event
from attendance_api.services.summary import recompute_summary

logger = logging.getLogger("attendance.matcher")

_SESSION_KEY = ["user_id", "date", "session_number"]


@dataclass
class MatchResult:
    created: int = 0
    closed: int = 0
    orphans: int = 0
    midnight_closures: int = 0
    rejected_in: int = 0
    ignored_in: int = 0
    touched_dates: Set[dt.date] = field(default_factory=set)

    def merge(self, other: "MatchResult") -> None:
        self.created += other.created
        self.closed += other.closed
        self.orphans += other.orphans
        self.midnight_closures += other.midnight_closures
        self.rejected_in += other.rejected_in
        self.ignored_in += other.ignored_in
        self.touched_dates |= other.touched_dates


def max_session_number(db: Session, user_id: str, date: dt.date) -> int:
    value = db.scalar(
        select(func.max(AttendanceSession.session_number)).where(
            AttendanceSession.user_id == user_id,
            AttendanceSession.date == date,
        )
    )
    return int(value or 0)


class SessionMatcher:
    def __init__(self, db: Session, user_id: str, window: Optional[dt.timedelta] = None) -> None:
        self.db = db
        self.user_id = user_id
        self.window = window or day_boundary.session_window()

    def apply(self, date: dt.date, events: Sequence[Event]) -> MatchResult:
        """Run one day's ordered events through the state machine."""
        result = MatchResult()
        counter = max_session_number(self.db, self.user_id, date)
        open_session: Optional[AttendanceSession] = None

        for event in events:
            if event.action == CheckinAction.IN:
                if open_session is not None:
                    result.ignored_in += 1
                    continue

                carryover = day_boundary.find_carryover(
                    self.db, self.user_id, date, event.timestamp, self.window
                )
                if carryover is not None:
                    logger.warning(
                        "checkin_rejected_open_previous_day_session",
                        extra={
                            "user_id": self.user_id,
                            "date": date.isoformat(),
                            "session_number": carryover.session_number,
                        },
                    )
                    result.rejected_in += 1
                    open_session = carryover
                    continue

                counter += 1
                open_session = self._open(date, counter, event)
                result.created += 1
                self._touch(result, date)
                continue

            if open_session is not None and not day_boundary.within_window(
                open_session, event.timestamp, self.window
            ):
                logger.warning(
                    "open_session_outside_window",
                    extra={
                        "user_id": self.user_id,
                        "date": open_session.date.isoformat(),
                        "session_number": open_session.session_number,
                    },
                )
                open_session = None

            if open_session is not None:
                day_boundary.close_session(open_session, event)
                self.db.flush()
                result.closed += 1
                if open_session.date != date:
                    result.midnight_closures += 1
                self._touch(result, open_session.date)
                open_session = None
                continue

            closed = day_boundary.resolve_checkout(self.db, self.user_id, date, event, self.window)
            if closed is not None:
                result.closed += 1
                if closed.date != date:
                    result.midnight_closures += 1
                self._touch(result, closed.date)
                continue

            counter += 1
            self._orphan(date, counter, event)
            result.orphans += 1
            self._touch(result, date)

        return result

    def _touch(self, result: MatchResult, date: dt.date) -> None:
        recompute_summary(self.db, self.user_id, date)
        result.touched_dates.add(date)

    def _open(self, date: dt.date, number: int, event: Event) -> AttendanceSession:
        table = AttendanceSession.__table__
        now = utcnow()
        stmt = upsert_insert(self.db, table).values(
            user_id=self.user_id,
            date=date,
            session_number=number,
            checkin_time=event.timestamp,
            checkin_latitude=event.latitude,
            checkin_longitude=event.longitude,
            checkin_location=event.location,
            is_complete=False,
            created_at=now,
            updated_at=now,
        )
        # Only refresh the check-in fields of the same check-in; a different
        # row under this key means another writer took the number.
        stmt = stmt.on_conflict_do_update(
            index_elements=_SESSION_KEY,
            set_={
                "checkin_latitude": stmt.excluded.checkin_latitude,
                "checkin_longitude": stmt.excluded.checkin_longitude,
                "checkin_location": stmt.excluded.checkin_location,
                "updated_at": stmt.excluded.updated_at,
            },
            where=table.c.checkin_time == stmt.excluded.checkin_time,
        ).returning(table.c.id)

        session_id = self.db.execute(stmt).scalar()
        if session_id is None:
            raise SessionSlotConflict(self.user_id, date, number)
        return self.db.get(AttendanceSession, session_id, populate_existing=True)

    def _orphan(self, date: dt.date, number: int, event: Event) -> None:
        table = AttendanceSession.__table__
        now = utcnow()
        stmt = (
            upsert_insert(self.db, table)
            .values(
                user_id=self.user_id,
                date=date,
                session_number=number,
                checkin_time=event.timestamp,
                checkout_time=event.timestamp,
                checkin_latitude=event.latitude,
                checkin_longitude=event.longitude,
                checkout_latitude=event.latitude,
                checkout_longitude=event.longitude,
                checkin_location=event.location,
                checkout_location=event.location,
                duration_minutes=0,
                is_complete=True,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=_SESSION_KEY)
            .returning(table.c.id)
        )
        if self.db.execute(stmt).scalar() is None:
            raise SessionSlotConflict(self.user_id, date, number)
        logger.info(
            "orphan_checkout_recorded",
            extra={"user_id": self.user_id, "date": date.isoformat(), "session_number": number},
        )


def match_day_batches(db: Session, user_id: str, batches) -> MatchResult:
    matcher = SessionMatcher(db, user_id)
    total = MatchResult()
    for batch in batches:
        if batch.events:
            total.merge(matcher.apply(batch.date, batch.events))
    return total


