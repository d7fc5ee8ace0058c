from __future__ import annotations

from datetime import date, timedelta

import pytest

from attendance_api.models.attendance import AttendanceSession
from attendance_api.models.enums import CheckinAction
from attendance_api.services.day_boundary import (
    duration_minutes,
    find_carryover,
    resolve_checkout,
    within_window,
)
from attendance_api.services.normalizer import Event

from conftest import add_user, utc

MONDAY = date(2026, 3, 9)
TUESDAY = date(2026, 3, 10)


def _open(db, day, checkin, number=1):
    session = AttendanceSession(
        user_id="u-100",
        date=day,
        session_number=number,
        checkin_time=checkin,
        is_complete=False,
    )
    db.add(session)
    db.flush()
    return session


@pytest.fixture(autouse=True)
def user(db):
    return add_user(db)


@pytest.mark.parametrize(
    "seconds, expected",
    [(0, 0), (29, 0), (30, 1), (89, 1), (1800, 30), (-120, 0)],
)
def test_duration_rounds_to_nearest_minute_and_never_negative(seconds, expected):
    start = utc(2026, 3, 9, 8, 0)
    assert duration_minutes(start, start + timedelta(seconds=seconds)) == expected


def test_checkout_after_midnight_closes_previous_day_session(db):
    opened = _open(db, MONDAY, utc(2026, 3, 9, 23, 40))

    closed = resolve_checkout(db, "u-100", TUESDAY, Event(CheckinAction.OUT, utc(2026, 3, 10, 0, 10)))

    assert closed is opened
    assert closed.checkout_time == utc(2026, 3, 10, 0, 10)
    assert closed.duration_minutes == 30
    assert closed.is_complete is True


def test_current_day_session_wins_over_previous_day(db):
    _open(db, MONDAY, utc(2026, 3, 9, 22, 0))
    today = _open(db, TUESDAY, utc(2026, 3, 10, 6, 0))

    closed = resolve_checkout(db, "u-100", TUESDAY, Event(CheckinAction.OUT, utc(2026, 3, 10, 9, 0)))

    assert closed is today


def test_latest_checkin_is_chosen(db):
    _open(db, MONDAY, utc(2026, 3, 9, 8, 0), number=1)
    later = _open(db, MONDAY, utc(2026, 3, 9, 13, 0), number=2)

    closed = resolve_checkout(db, "u-100", MONDAY, Event(CheckinAction.OUT, utc(2026, 3, 9, 17, 0)))

    assert closed is later


def test_session_older_than_window_is_not_closed(db):
    stale = _open(db, MONDAY, utc(2026, 3, 9, 6, 0))

    closed = resolve_checkout(db, "u-100", TUESDAY, Event(CheckinAction.OUT, utc(2026, 3, 10, 6, 30)))

    assert closed is None
    assert stale.checkout_time is None


def test_checkin_after_the_out_is_not_a_candidate(db):
    _open(db, MONDAY, utc(2026, 3, 9, 18, 0))

    closed = resolve_checkout(db, "u-100", MONDAY, Event(CheckinAction.OUT, utc(2026, 3, 9, 17, 0)))

    assert closed is None


def test_find_carryover_respects_window(db):
    opened = _open(db, MONDAY, utc(2026, 3, 9, 22, 0))

    assert find_carryover(db, "u-100", TUESDAY, utc(2026, 3, 10, 6, 0)) is opened
    assert find_carryover(db, "u-100", TUESDAY, utc(2026, 3, 10, 14, 1)) is None
    assert find_carryover(db, "u-100", TUESDAY, utc(2026, 3, 10, 6, 0), window=timedelta(hours=4)) is None


def test_within_window_bounds(db):
    session = _open(db, MONDAY, utc(2026, 3, 9, 20, 0))

    assert within_window(session, utc(2026, 3, 10, 12, 0))
    assert not within_window(session, utc(2026, 3, 10, 12, 1))
