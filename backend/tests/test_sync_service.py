from __future__ import annotations

import random
import threading
from datetime import date

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from attendance_api.core.errors import (
    NotFoundError,
    SessionConflictError,
    SyncValidationError,
    TransientStorageError,
)
from attendance_api.models import Base
from attendance_api.models.attendance import AttendanceSession, AttendanceSummary
from attendance_api.models.checkin import Checkin
from attendance_api.models.enums import CheckinAction, SyncAction
from attendance_api.services import session_matcher, sync
from attendance_api.services.normalizer import Event
from attendance_api.services.sync import check_count, full_history, incremental_sync

from conftest import add_user, utc

IN = CheckinAction.IN
OUT = CheckinAction.OUT
MONDAY = date(2026, 3, 9)
TUESDAY = date(2026, 3, 10)


@pytest.fixture(autouse=True)
def user(db):
    return add_user(db)


def _day_batch():
    return [
        Event(IN, utc(2026, 3, 9, 8, 0), latitude=10.0, longitude=20.0),
        Event(OUT, utc(2026, 3, 9, 12, 0)),
        Event(IN, utc(2026, 3, 9, 13, 0)),
        Event(OUT, utc(2026, 3, 9, 17, 0)),
    ]


def _session_rows(db):
    return [
        (s.date, s.session_number, s.checkin_time, s.checkout_time, s.duration_minutes, s.is_complete)
        for s in db.scalars(
            select(AttendanceSession).order_by(AttendanceSession.date, AttendanceSession.session_number)
        )
    ]


def _summary_rows(db):
    return [
        (s.date, s.total_work_minutes, s.total_sessions, s.is_complete)
        for s in db.scalars(select(AttendanceSummary).order_by(AttendanceSummary.date))
    ]


def test_sync_builds_sessions_and_summary(db):
    result = incremental_sync(db, "u-100", _day_batch())

    assert result.synced_count == 4
    assert result.accepted_count == 4
    assert result.duplicate_count == 0
    assert result.dates == [MONDAY]
    assert _summary_rows(db) == [(MONDAY, 480, 2, True)]
    assert all(row.is_synced for row in full_history(db, "u-100"))


def test_resubmitting_a_batch_changes_nothing(db):
    incremental_sync(db, "u-100", _day_batch())
    sessions_before = _session_rows(db)
    summaries_before = _summary_rows(db)

    again = incremental_sync(db, "u-100", _day_batch())

    assert again.accepted_count == 0
    assert again.duplicate_count == 4
    assert _session_rows(db) == sessions_before
    assert _summary_rows(db) == summaries_before
    assert db.scalar(select(func.count(Checkin.id))) == 4


def test_duplicates_inside_one_batch_are_dropped(db):
    batch = _day_batch()
    result = incremental_sync(db, "u-100", batch + [batch[0]])

    assert result.accepted_count == 4
    assert result.duplicate_count == 1
    assert [row[1] for row in _session_rows(db)] == [1, 2]


def test_submission_order_does_not_matter(db):
    add_user(db, user_id="u-200", passkey="secret-200")
    shuffled = _day_batch()
    random.Random(7).shuffle(shuffled)

    incremental_sync(db, "u-100", _day_batch())
    incremental_sync(db, "u-200", shuffled)

    def rows(user_id):
        return [
            (s.date, s.session_number, s.checkin_time, s.checkout_time, s.duration_minutes, s.is_complete)
            for s in db.scalars(
                select(AttendanceSession)
                .where(AttendanceSession.user_id == user_id)
                .order_by(AttendanceSession.session_number)
            )
        ]

    assert rows("u-100") == rows("u-200")
    assert len(rows("u-100")) == 2


def test_midnight_crossing_makes_one_session(db):
    result = incremental_sync(
        db,
        "u-100",
        [Event(IN, utc(2026, 3, 9, 23, 40)), Event(OUT, utc(2026, 3, 10, 0, 10))],
    )

    rows = _session_rows(db)
    assert len(rows) == 1
    assert rows[0][0] == MONDAY
    assert rows[0][4] == 30
    assert _summary_rows(db) == [(MONDAY, 30, 1, True)]
    assert result.dates == [MONDAY]


def test_midnight_crossing_across_two_syncs(db):
    incremental_sync(db, "u-100", [Event(IN, utc(2026, 3, 9, 23, 40))])
    incremental_sync(db, "u-100", [Event(OUT, utc(2026, 3, 10, 0, 10))])

    rows = _session_rows(db)
    assert len(rows) == 1
    assert rows[0][3] == utc(2026, 3, 10, 0, 10)
    assert rows[0][4] == 30


def test_unmatched_checkout_is_recorded_as_orphan(db):
    incremental_sync(db, "u-100", [Event(OUT, utc(2026, 3, 9, 10, 0))])

    assert _session_rows(db) == [
        (MONDAY, 1, utc(2026, 3, 9, 10, 0), utc(2026, 3, 9, 10, 0), 0, True)
    ]


def test_in_while_previous_day_is_open_is_rejected(db):
    incremental_sync(db, "u-100", [Event(IN, utc(2026, 3, 9, 22, 0))])

    result = incremental_sync(
        db,
        "u-100",
        [Event(IN, utc(2026, 3, 10, 6, 0)), Event(OUT, utc(2026, 3, 10, 7, 0))],
    )

    assert result.rejected_in_count == 1
    rows = _session_rows(db)
    assert len(rows) == 1
    assert rows[0][0] == MONDAY
    assert rows[0][4] == 540
    assert db.scalar(select(func.count(Checkin.id))) == 3


def test_two_ins_in_two_syncs_get_consecutive_numbers(db):
    incremental_sync(db, "u-100", [Event(IN, utc(2026, 3, 9, 8, 0))])
    incremental_sync(db, "u-100", [Event(IN, utc(2026, 3, 9, 13, 0))])

    rows = _session_rows(db)
    assert [row[1] for row in rows] == [1, 2]
    assert [row[2] for row in rows] == [utc(2026, 3, 9, 8, 0), utc(2026, 3, 9, 13, 0)]


def test_simultaneous_syncs_get_consecutive_numbers(tmp_path):
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'attendance.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
    with factory() as setup:
        add_user(setup)

    barrier = threading.Barrier(2)
    errors = []

    def push(hour):
        with factory() as session:
            barrier.wait()
            try:
                incremental_sync(session, "u-100", [Event(IN, utc(2026, 3, 9, hour, 0))])
            except Exception as exc:
                errors.append(exc)

    threads = [threading.Thread(target=push, args=(hour,)) for hour in (8, 13)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    with factory() as check:
        rows = _session_rows(check)
    engine.dispose()

    assert errors == []
    assert sorted(row[1] for row in rows) == [1, 2]
    assert {row[2] for row in rows} == {utc(2026, 3, 9, 8, 0), utc(2026, 3, 9, 13, 0)}


def test_carried_over_session_is_not_closed_outside_window(db):
    incremental_sync(db, "u-100", [Event(IN, utc(2026, 3, 9, 20, 0))])

    result = incremental_sync(
        db,
        "u-100",
        [Event(IN, utc(2026, 3, 10, 8, 0)), Event(OUT, utc(2026, 3, 10, 17, 0))],
    )

    assert result.rejected_in_count == 1
    assert _session_rows(db) == [
        (MONDAY, 1, utc(2026, 3, 9, 20, 0), None, None, False),
        (TUESDAY, 1, utc(2026, 3, 10, 17, 0), utc(2026, 3, 10, 17, 0), 0, True),
    ]
    assert all(row[4] is None or row[4] <= 960 for row in _session_rows(db))


def test_stale_session_number_is_retried(db, monkeypatch):
    incremental_sync(db, "u-100", [Event(IN, utc(2026, 3, 9, 8, 0))])

    real = session_matcher.max_session_number
    calls = []

    def stale_once(*args):
        calls.append(args)
        if len(calls) == 1:
            return 0
        return real(*args)

    monkeypatch.setattr(session_matcher, "max_session_number", stale_once)

    result = incremental_sync(db, "u-100", [Event(IN, utc(2026, 3, 9, 13, 0))])

    assert len(calls) == 2
    assert result.accepted_count == 1
    assert [row[1] for row in _session_rows(db)] == [1, 2]
    assert db.scalar(select(func.count(Checkin.id))) == 2


def test_conflict_after_every_attempt_raises(db, monkeypatch):
    incremental_sync(db, "u-100", [Event(IN, utc(2026, 3, 9, 8, 0))])
    monkeypatch.setattr(session_matcher, "max_session_number", lambda *args: 0)

    with pytest.raises(SessionConflictError):
        incremental_sync(db, "u-100", [Event(IN, utc(2026, 3, 9, 13, 0))], max_attempts=2)

    assert db.scalar(select(func.count(Checkin.id))) == 1
    assert len(_session_rows(db)) == 1


def test_storage_outage_is_transient(db, monkeypatch):
    def unavailable(*args):
        raise OperationalError("SELECT 1", {}, Exception("server closed the connection"))

    monkeypatch.setattr(sync, "_apply_batch", unavailable)

    with pytest.raises(TransientStorageError):
        incremental_sync(db, "u-100", _day_batch())


def test_invalid_batch_writes_nothing(db):
    with pytest.raises(SyncValidationError):
        incremental_sync(
            db,
            "u-100",
            [Event(IN, utc(2026, 3, 9, 8, 0)), Event(OUT, utc(2026, 3, 9, 9, 0), latitude=120.0)],
        )

    assert db.scalar(select(func.count(Checkin.id))) == 0


def test_unknown_user(db):
    with pytest.raises(NotFoundError):
        incremental_sync(db, "nobody", _day_batch())


@pytest.mark.parametrize(
    "server, local, expected",
    [
        (2, 5, SyncAction.INCREMENTAL),
        (5, 2, SyncAction.FULL),
        (3, 3, SyncAction.NONE),
        (0, 0, SyncAction.NONE),
    ],
)
def test_count_check_decision(db, server, local, expected):
    events = [Event(IN, utc(2026, 3, 1 + day, 8, 0)) for day in range(server)]
    if events:
        incremental_sync(db, "u-100", events)

    decision = check_count(db, "u-100", local)

    assert decision.action == expected
    assert decision.server_count == server


def test_full_history_is_ordered_by_event_time(db):
    incremental_sync(db, "u-100", list(reversed(_day_batch())))

    history = full_history(db, "u-100")

    assert [row.created_at for row in history] == [e.timestamp for e in _day_batch()]
    assert [row.action for row in history] == [IN, OUT, IN, OUT]
