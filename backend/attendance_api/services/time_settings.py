"""Per-user shift times: admin edits and a reconciler that keeps a row for every user.

The reconciler runs once when the API starts and then on a fixed interval in
a daemon thread. Each pass also purges expired admin tokens. A failed pass is
logged and the next pass tries again.
"""

from __future__ import annotations

import datetime as dt
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from attendance_api.core.errors import NotFoundError
from attendance_api.core.settings import settings
from attendance_api.core.token_store import purge_expired_tokens
from attendance_api.models.time_settings import UserTimeSettings
from attendance_api.models.user import UserInfo

logger = logging.getLogger("attendance.reconcile")


@dataclass(frozen=True)
class TimeSettingsStatus:
    total_users: int
    users_with_time_settings: int
    missing_count: int
    is_synced: bool


def ensure_default_time_settings(db: Session) -> int:
    """Insert default shift times for users that have none. Returns rows created."""
    missing = db.scalars(
        select(UserInfo.user_id)
        .outerjoin(UserTimeSettings, UserTimeSettings.user_id == UserInfo.user_id)
        .where(UserTimeSettings.id.is_(None))
        .order_by(UserInfo.user_id)
    ).all()
    for user_id in missing:
        db.add(
            UserTimeSettings(
                user_id=user_id,
                on_duty_time=settings.default_on_duty_time,
                off_duty_time=settings.default_off_duty_time,
            )
        )
    db.flush()
    return len(missing)


def time_settings_status(db: Session) -> TimeSettingsStatus:
    total_users = int(db.scalar(select(func.count(UserInfo.id))) or 0)
    with_settings = int(
        db.scalar(
            select(func.count(UserTimeSettings.id)).join(
                UserInfo, UserInfo.user_id == UserTimeSettings.user_id
            )
        )
        or 0
    )
    missing = max(0, total_users - with_settings)
    return TimeSettingsStatus(
        total_users=total_users,
        users_with_time_settings=with_settings,
        missing_count=missing,
        is_synced=missing == 0,
    )


@dataclass(frozen=True)
class UserShift:
    user_id: str
    user_name: Optional[str]
    department: int
    department_name: Optional[str]
    on_duty_time: Optional[dt.time]
    off_duty_time: Optional[dt.time]


@dataclass(frozen=True)
class ShiftUpdate:
    user_id: str
    on_duty_time: dt.time
    off_duty_time: dt.time


def list_user_time_settings(db: Session, department: Optional[int] = None) -> List[UserShift]:
    """Every user with their stored shift times; users without a row get ``None`` times."""
    stmt = (
        select(
            UserInfo.user_id,
            UserInfo.user_name,
            UserInfo.department,
            UserInfo.department_name,
            UserTimeSettings.on_duty_time,
            UserTimeSettings.off_duty_time,
        )
        .outerjoin(UserTimeSettings, UserTimeSettings.user_id == UserInfo.user_id)
        .order_by(UserInfo.department, UserInfo.user_id)
    )
    if department is not None:
        stmt = stmt.where(UserInfo.department == department)
    return [UserShift(*row) for row in db.execute(stmt).all()]


def update_time_settings(db: Session, updates: Sequence[ShiftUpdate]) -> int:
    """Create or overwrite shift times. Later entries for the same user win."""
    by_user: Dict[str, ShiftUpdate] = {update.user_id: update for update in updates}
    known = set(db.scalars(select(UserInfo.user_id).where(UserInfo.user_id.in_(by_user))).all())
    unknown = sorted(set(by_user) - known)
    if unknown:
        raise NotFoundError(f"unknown users: {', '.join(unknown)}")

    existing = {
        row.user_id: row
        for row in db.scalars(select(UserTimeSettings).where(UserTimeSettings.user_id.in_(by_user)))
    }
    for user_id, update in by_user.items():
        row = existing.get(user_id)
        if row is None:
            db.add(
                UserTimeSettings(
                    user_id=user_id,
                    on_duty_time=update.on_duty_time,
                    off_duty_time=update.off_duty_time,
                )
            )
        else:
            row.on_duty_time = update.on_duty_time
            row.off_duty_time = update.off_duty_time
    db.flush()
    logger.info("Updated time settings for %d users", len(by_user))
    return len(by_user)


def delete_time_settings(db: Session, user_id: str) -> None:
    row = db.scalar(select(UserTimeSettings).where(UserTimeSettings.user_id == user_id))
    if row is None:
        raise NotFoundError(f"no time settings for {user_id}")
    db.delete(row)
    db.flush()


def reconcile_once(session_factory: Callable[[], Session]) -> Optional[int]:
    """One reconciliation pass in its own transaction; ``None`` if it failed."""
    with session_factory() as db:
        try:
            created = ensure_default_time_settings(db)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception("time_settings_sync_failed")
            return None
    if created:
        logger.info("Created default time settings for %d users", created)
    return created


class TimeSettingsReconciler:
    def __init__(self, session_factory: Callable[[], Session], interval_seconds: Optional[int] = None) -> None:
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds or settings.time_settings_sync_interval_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="time-settings-reconciler", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def run_pass(self) -> None:
        reconcile_once(self.session_factory)
        purge_expired_tokens(self.session_factory)

    def _run(self) -> None:
        self.run_pass()
        while not self._stop.wait(self.interval_seconds):
            self.run_pass()
