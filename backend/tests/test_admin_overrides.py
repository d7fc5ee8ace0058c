from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import select

from attendance_api.core.errors import InvariantViolationError, NotFoundError, SyncValidationError
from attendance_api.models.attendance import AttendanceSession, AttendanceSummary
from attendance_api.models.checkin import Checkin
from attendance_api.models.enums import CheckinAction
from attendance_api.services.admin_overrides import (
    CheckinPatch,
    SessionPatch,
    apply_session_patch,
    delete_checkin,
    delete_session,
    update_checkin,
)
from attendance_api.services.normalizer import Event
from attendance_api.services.sync import incremental_sync

from conftest import add_user, utc

DAY = date(2026, 3, 9)


@pytest.fixture()
def sessions(db):
    add_user(db)
    incremental_sync(
        db,
        "u-100",
        [
            Event(CheckinAction.IN, utc(2026, 3, 9, 8, 0)),
            Event(CheckinAction.OUT, utc(2026, 3, 9, 12, 0)),
            Event(CheckinAction.IN, utc(2026, 3, 9, 13, 0)),
            Event(CheckinAction.OUT, utc(2026, 3, 9, 17, 0)),
        ],
    )
    return db.scalars(select(AttendanceSession).order_by(AttendanceSession.session_number)).all()


def _summary(db):
    return db.scalars(
        select(AttendanceSummary).execution_options(populate_existing=True)
    ).one_or_none()


def test_editing_checkout_recomputes_duration_and_summary(db, sessions):
    patch = SessionPatch.from_mapping({"checkout_time": utc(2026, 3, 9, 12, 45), "checkout_location": "Gate B"})

    session = apply_session_patch(db, session_id=sessions[0].id, patch=patch)
    db.commit()

    assert session.duration_minutes == 285
    assert session.checkout_location == "Gate B"
    assert _summary(db).total_work_minutes == 285 + 240


def test_checkout_before_checkin_is_rejected(db, sessions):
    patch = SessionPatch.from_mapping({"checkout_time": utc(2026, 3, 9, 7, 0)})

    with pytest.raises(InvariantViolationError):
        apply_session_patch(db, session_id=sessions[0].id, patch=patch)


def test_moving_checkin_to_another_day_is_rejected(db, sessions):
    patch = SessionPatch.from_mapping({"checkin_time": utc(2026, 3, 8, 23, 0)})

    with pytest.raises(InvariantViolationError):
        apply_session_patch(db, session_id=sessions[0].id, patch=patch)


def test_unknown_fields_are_rejected():
    with pytest.raises(InvariantViolationError):
        SessionPatch.from_mapping({"session_number": 7})


def test_reopening_is_refused_while_another_session_is_open(db, sessions):
    apply_session_patch(db, session_id=sessions[1].id, patch=SessionPatch.from_mapping({"checkout_time": None}))
    db.commit()
    assert _summary(db).is_complete is False

    with pytest.raises(InvariantViolationError):
        apply_session_patch(
            db, session_id=sessions[0].id, patch=SessionPatch.from_mapping({"checkout_time": None})
        )


def test_deleting_last_session_removes_summary(db, sessions):
    delete_session(db, session_id=sessions[0].id)
    db.commit()
    assert _summary(db).total_sessions == 1

    delete_session(db, session_id=sessions[1].id)
    db.commit()
    assert _summary(db) is None


def test_deleting_event_keeps_sessions_and_summary(db, sessions):
    event = db.scalars(select(Checkin).order_by(Checkin.id)).first()

    delete_checkin(db, checkin_id=event.id)
    db.commit()

    assert db.get(Checkin, event.id) is None
    assert _summary(db).total_work_minutes == 480


def test_missing_rows(db):
    with pytest.raises(NotFoundError):
        delete_session(db, session_id=999)
    with pytest.raises(NotFoundError):
        delete_checkin(db, checkin_id=999)


def _first_event(db):
    return db.scalars(select(Checkin).order_by(Checkin.created_at, Checkin.id)).first()


def test_editing_event_updates_the_log_and_keeps_summary(db, sessions):
    event = _first_event(db)

    updated = update_checkin(
        db,
        checkin_id=event.id,
        patch=CheckinPatch.from_mapping({"created_at": utc(2026, 3, 9, 7, 45), "latitude": 11.5}),
    )
    db.commit()

    assert updated.created_at == utc(2026, 3, 9, 7, 45)
    assert updated.latitude == 11.5
    assert updated.action == CheckinAction.IN
    assert _summary(db).total_work_minutes == 480


def test_editing_event_onto_another_event_is_rejected(db, sessions):
    event = _first_event(db)

    with pytest.raises(InvariantViolationError):
        update_checkin(
            db,
            checkin_id=event.id,
            patch=CheckinPatch.from_mapping({"created_at": utc(2026, 3, 9, 13, 0)}),
        )


def test_edited_event_is_validated(db, sessions):
    event = _first_event(db)

    with pytest.raises(SyncValidationError):
        update_checkin(
            db,
            checkin_id=event.id,
            patch=CheckinPatch.from_mapping({"created_at": utc(2099, 1, 1, 0, 0)}),
        )
    with pytest.raises(InvariantViolationError):
        CheckinPatch.from_mapping({"user_id": "u-200"})
    with pytest.raises(NotFoundError):
        update_checkin(db, checkin_id=999, patch=CheckinPatch.from_mapping({"latitude": 1.0}))
