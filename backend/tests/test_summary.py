from __future__ import annotations

from datetime import date
from types import SimpleNamespace

from sqlalchemy import select

from attendance_api.models.attendance import AttendanceSession, AttendanceSummary
from attendance_api.services.summary import recompute_summary, summarize_sessions

from conftest import add_user, utc

DAY = date(2026, 3, 9)


def _session(checkin, checkout=None, minutes=None):
    return SimpleNamespace(
        checkin_time=checkin,
        checkout_time=checkout,
        duration_minutes=minutes,
        is_complete=checkout is not None,
    )


def test_summarize_sessions_aggregates_day():
    values = summarize_sessions(
        [
            _session(utc(2026, 3, 9, 13, 0), utc(2026, 3, 9, 17, 30), 270),
            _session(utc(2026, 3, 9, 8, 0), utc(2026, 3, 9, 12, 0), 240),
        ]
    )

    assert values.first_checkin_time == utc(2026, 3, 9, 8, 0)
    assert values.last_checkout_time == utc(2026, 3, 9, 17, 30)
    assert values.total_work_minutes == 510
    assert values.total_sessions == 2
    assert values.is_complete is True


def test_open_session_makes_day_incomplete():
    values = summarize_sessions(
        [
            _session(utc(2026, 3, 9, 8, 0), utc(2026, 3, 9, 12, 0), 240),
            _session(utc(2026, 3, 9, 13, 0)),
        ]
    )

    assert values.is_complete is False
    assert values.total_work_minutes == 240
    assert values.last_checkout_time == utc(2026, 3, 9, 12, 0)


def test_no_sessions_has_no_summary():
    assert summarize_sessions([]) is None


def test_recompute_upserts_and_deletes_row(db):
    add_user(db)
    session = AttendanceSession(
        user_id="u-100",
        date=DAY,
        session_number=1,
        checkin_time=utc(2026, 3, 9, 8, 0),
        checkout_time=utc(2026, 3, 9, 9, 15),
        duration_minutes=75,
        is_complete=True,
    )
    db.add(session)
    db.flush()

    summary = recompute_summary(db, "u-100", DAY)
    db.commit()
    assert summary.total_work_minutes == 75
    assert summary.total_sessions == 1
    assert summary.first_checkin_time == utc(2026, 3, 9, 8, 0)

    session.checkout_time = utc(2026, 3, 9, 10, 0)
    session.duration_minutes = 120
    summary = recompute_summary(db, "u-100", DAY)
    db.commit()
    assert summary.total_work_minutes == 120
    assert db.scalars(select(AttendanceSummary)).all() == [summary]

    db.delete(session)
    db.flush()
    assert recompute_summary(db, "u-100", DAY) is None
    db.commit()
    assert db.scalars(select(AttendanceSummary)).all() == []
