"""Administrative edits that bypass the matcher but keep summaries consistent.

Functions here flush; the calling router owns the commit.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from attendance_api.core.errors import InvariantViolationError, NotFoundError
from attendance_api.core.settings import settings
from attendance_api.models.attendance import AttendanceSession
from attendance_api.models.checkin import Checkin
from attendance_api.services.day_boundary import duration_minutes
from attendance_api.services.normalizer import Event, day_of, validate_event
from attendance_api.services.summary import recompute_summary

logger = logging.getLogger("attendance.admin")

_UNSET = object()


@dataclass
class FieldPatch:
    """Explicit set of column assignments; only supplied fields are written."""

    values: Dict[str, Any] = field(default_factory=dict)

    FIELDS: ClassVar[Tuple[str, ...]] = ()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "FieldPatch":
        unknown = set(data) - set(cls.FIELDS)
        if unknown:
            raise InvariantViolationError(f"fields cannot be edited: {', '.join(sorted(unknown))}")
        return cls(values={key: data[key] for key in cls.FIELDS if key in data})

    def get(self, name: str, default: Any = _UNSET) -> Any:
        return self.values.get(name, default)

    def __bool__(self) -> bool:
        return bool(self.values)


class SessionPatch(FieldPatch):
    """Session columns an administrator may assign; ``checkout_time=None`` reopens the session."""

    FIELDS = (
        "checkin_time",
        "checkout_time",
        "checkin_latitude",
        "checkin_longitude",
        "checkout_latitude",
        "checkout_longitude",
        "checkin_location",
        "checkout_location",
    )


class CheckinPatch(FieldPatch):
    FIELDS = ("action", "created_at", "latitude", "longitude")


def _get_session(db: Session, session_id: int) -> AttendanceSession:
    session = db.get(AttendanceSession, session_id)
    if session is None:
        raise NotFoundError(f"session {session_id} not found")
    return session


def _other_open_session(db: Session, session: AttendanceSession) -> Optional[AttendanceSession]:
    return db.scalars(
        select(AttendanceSession).where(
            AttendanceSession.user_id == session.user_id,
            AttendanceSession.id != session.id,
            AttendanceSession.checkout_time.is_(None),
            AttendanceSession.date >= session.date - dt.timedelta(days=1),
            AttendanceSession.date <= session.date + dt.timedelta(days=1),
        )
    ).first()


def apply_session_patch(db: Session, *, session_id: int, patch: SessionPatch) -> AttendanceSession:
    session = _get_session(db, session_id)

    checkin_time = patch.get("checkin_time", session.checkin_time)
    checkout_time = patch.get("checkout_time", session.checkout_time)
    if checkin_time is None:
        raise InvariantViolationError("checkin_time cannot be cleared")
    if day_of(checkin_time) != session.date:
        raise InvariantViolationError("checkin_time must stay on the session's date")
    if checkout_time is not None and checkout_time < checkin_time:
        raise InvariantViolationError("checkout_time is before checkin_time")
    if checkout_time is None and session.checkout_time is not None:
        other = _other_open_session(db, session)
        if other is not None:
            raise InvariantViolationError(
                f"session {other.session_number} on {other.date} is still open"
            )

    for name, value in patch.values.items():
        setattr(session, name, value)

    if checkout_time is None:
        session.duration_minutes = None
        session.is_complete = False
    else:
        session.duration_minutes = duration_minutes(checkin_time, checkout_time)
        session.is_complete = True

    db.flush()
    recompute_summary(db, session.user_id, session.date)
    logger.info(
        "session_patched",
        extra={"user_id": session.user_id, "date": session.date.isoformat(), "session_number": session.session_number},
    )
    return session


def delete_session(db: Session, *, session_id: int) -> AttendanceSession:
    session = _get_session(db, session_id)
    db.delete(session)
    db.flush()
    recompute_summary(db, session.user_id, session.date)
    logger.info(
        "session_deleted",
        extra={"user_id": session.user_id, "date": session.date.isoformat(), "session_number": session.session_number},
    )
    return session


def delete_checkin(db: Session, *, checkin_id: int) -> Checkin:
    checkin = db.get(Checkin, checkin_id)
    if checkin is None:
        raise NotFoundError(f"checkin {checkin_id} not found")
    db.delete(checkin)
    db.flush()
    recompute_summary(db, checkin.user_id, day_of(checkin.created_at))
    return checkin


def update_checkin(
    db: Session,
    *,
    checkin_id: int,
    patch: CheckinPatch,
    now: Optional[dt.datetime] = None,
) -> Checkin:
    """Correct a logged event and recompute the summaries of the days it touches.

    The edited event is validated like a synced one and may not collide with
    another event of the same user. Sessions already derived from it are left
    as they are.
    """
    checkin = db.get(Checkin, checkin_id)
    if checkin is None:
        raise NotFoundError(f"checkin {checkin_id} not found")

    edited = validate_event(
        Event(
            action=patch.get("action", checkin.action),
            timestamp=patch.get("created_at", checkin.created_at),
            latitude=patch.get("latitude", checkin.latitude),
            longitude=patch.get("longitude", checkin.longitude),
        ),
        now=now or dt.datetime.now(dt.timezone.utc),
        max_skew=dt.timedelta(minutes=settings.max_clock_skew_minutes),
    )
    clash = db.scalar(
        select(Checkin.id).where(
            Checkin.user_id == checkin.user_id,
            Checkin.action == edited.action,
            Checkin.created_at == edited.timestamp,
            Checkin.id != checkin.id,
        )
    )
    if clash is not None:
        raise InvariantViolationError(f"checkin {clash} already records this event")

    previous_day = day_of(checkin.created_at)
    checkin.action = edited.action
    checkin.created_at = edited.timestamp
    checkin.latitude = edited.latitude
    checkin.longitude = edited.longitude
    db.flush()

    for day in sorted({previous_day, day_of(edited.timestamp)}):
        recompute_summary(db, checkin.user_id, day)
    logger.info(
        "checkin_updated",
        extra={"user_id": checkin.user_id, "date": day_of(edited.timestamp).isoformat()},
    )
    return checkin
