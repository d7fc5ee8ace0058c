from __future__ import annotations

from datetime import date, time

from attendance_api.models.enums import CheckinAction
from attendance_api.models.time_settings import UserTimeSettings
from attendance_api.services.normalizer import Event
from attendance_api.services.reporting import (
    CheckinFilter,
    daily_sessions,
    department_stats,
    list_checkins,
    monthly_stats,
)
from attendance_api.services.sync import incremental_sync

from conftest import add_user, utc

IN = CheckinAction.IN
OUT = CheckinAction.OUT


def _seed_month(db):
    incremental_sync(
        db,
        "u-100",
        [
            Event(IN, utc(2026, 3, 9, 8, 0)),
            Event(OUT, utc(2026, 3, 9, 16, 0)),
            Event(IN, utc(2026, 3, 10, 7, 0)),
            Event(OUT, utc(2026, 3, 10, 18, 30)),
            Event(IN, utc(2026, 4, 1, 7, 0)),
        ],
    )


def test_daily_sessions_for_empty_day_is_zeroed(db):
    add_user(db)

    result = daily_sessions(db, "u-100", date(2026, 3, 9))

    assert result.sessions == []
    assert result.summary.total_sessions == 0
    assert result.summary.total_work_minutes == 0
    assert result.summary.is_complete is False
    assert result.summary.first_checkin_time is None


def test_daily_sessions_lists_sessions_in_number_order(db):
    add_user(db)
    _seed_month(db)

    result = daily_sessions(db, "u-100", date(2026, 3, 9))

    assert [s.session_number for s in result.sessions] == [1]
    assert result.summary.total_work_minutes == 480


def test_monthly_stats_use_user_time_settings(db):
    add_user(db)
    db.add(UserTimeSettings(user_id="u-100", on_duty_time=time(7, 30), off_duty_time=time(17, 0)))
    db.commit()
    _seed_month(db)

    stats = monthly_stats(db, "u-100", 2026, 3)

    assert [d.date for d in stats.days] == [date(2026, 3, 9), date(2026, 3, 10)]
    assert [(d.is_late, d.is_early_leave) for d in stats.days] == [(True, True), (False, False)]
    assert stats.attendance_days == 2
    assert stats.late_count == 1
    assert stats.early_leave_count == 1
    assert stats.total_work_minutes == 480 + 690


def test_monthly_stats_fall_back_without_time_settings(db):
    add_user(db)
    _seed_month(db)

    stats = monthly_stats(db, "u-100", 2026, 3)

    assert (stats.on_duty_time, stats.off_duty_time) == (time(9, 0), time(18, 0))
    assert stats.late_count == 0
    assert [d.is_early_leave for d in stats.days] == [True, False]


def test_open_day_is_never_an_early_leave(db):
    add_user(db)
    _seed_month(db)

    stats = monthly_stats(db, "u-100", 2026, 4)

    assert len(stats.days) == 1
    assert stats.days[0].is_early_leave is False
    assert stats.days[0].is_complete is False


def test_checkin_filter_binds_every_condition(db):
    add_user(db)
    add_user(db, "u-200", "secret-200", department=2)
    _seed_month(db)
    incremental_sync(db, "u-200", [Event(IN, utc(2026, 3, 9, 9, 0))])

    only_ins = list_checkins(db, CheckinFilter(user_id="u-100", action=IN))
    assert [row.created_at for row in only_ins] == [
        utc(2026, 4, 1, 7, 0),
        utc(2026, 3, 10, 7, 0),
        utc(2026, 3, 9, 8, 0),
    ]

    ranged = list_checkins(db, CheckinFilter(date_from=date(2026, 3, 10), date_to=date(2026, 3, 10)))
    assert {row.created_at for row in ranged} == {utc(2026, 3, 10, 7, 0), utc(2026, 3, 10, 18, 30)}

    department = list_checkins(db, CheckinFilter(department=2))
    assert [row.user_id for row in department] == ["u-200"]

    hostile = list_checkins(db, CheckinFilter(user_id="u-100' OR '1'='1"))
    assert hostile == []

    assert len(list_checkins(db, CheckinFilter(limit=2))) == 2


def test_department_stats_group_users_and_average_hours(db):
    add_user(db)
    add_user(db, "u-200", "secret-200", department=2)
    _seed_month(db)

    stats = department_stats(db)

    assert [(d.department, d.department_name, d.user_count) for d in stats] == [(1, "Dept 1", 1), (2, "Dept 2", 1)]
    first, second = stats
    assert first.total_attendance_days == 3
    assert first.avg_work_hours == 6.5
    assert [(u.user_id, u.total_days, u.total_hours) for u in first.users] == [("u-100", 3, 19.5)]
    assert first.users[0].last_checkout_time == utc(2026, 3, 10, 18, 30)
    assert (second.total_attendance_days, second.avg_work_hours) == (0, 0.0)
    assert second.users[0].last_checkout_time is None

    scoped = department_stats(db, department=2)
    assert [d.department for d in scoped] == [2]
    assert [u.user_id for u in scoped[0].users] == ["u-200"]
