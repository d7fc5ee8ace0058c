"""Device sync protocol: count check, incremental sync and full history."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session

from attendance_api.core import observability
from attendance_api.core.errors import (
    NotFoundError,
    SessionConflictError,
    SessionSlotConflict,
    TransientStorageError,
)
from attendance_api.core.settings import settings
from attendance_api.db.upsert import upsert_insert
from attendance_api.models.checkin import Checkin
from attendance_api.models.enums import SyncAction
from attendance_api.models.user import UserInfo
from attendance_api.services.normalizer import DayBatch, Event, normalize_batch
from attendance_api.services.session_matcher import MatchResult, match_day_batches

logger = logging.getLogger("attendance.sync")


@dataclass(frozen=True)
class CountCheck:
    action: SyncAction
    server_count: int


@dataclass
class SyncResult:
    synced_count: int = 0
    accepted_count: int = 0
    duplicate_count: int = 0
    rejected_in_count: int = 0
    dates: List[dt.date] = field(default_factory=list)


def server_event_count(db: Session, user_id: str) -> int:
    return int(db.scalar(select(func.count(Checkin.id)).where(Checkin.user_id == user_id)) or 0)


def decide_sync_action(server_count: int, local_count: int) -> SyncAction:
    if server_count == local_count:
        return SyncAction.NONE
    if server_count < local_count:
        return SyncAction.INCREMENTAL
    return SyncAction.FULL


def check_count(db: Session, user_id: str, local_count: int) -> CountCheck:
    server_count = server_event_count(db, user_id)
    return CountCheck(action=decide_sync_action(server_count, local_count), server_count=server_count)


def full_history(db: Session, user_id: str) -> List[Checkin]:
    return list(
        db.scalars(
            select(Checkin)
            .where(Checkin.user_id == user_id)
            .order_by(Checkin.created_at.asc(), Checkin.id.asc())
        ).all()
    )


def _lock_user(db: Session, user_id: str) -> UserInfo:
    user = db.execute(
        select(UserInfo).where(UserInfo.user_id == user_id).with_for_update()
    ).scalar_one_or_none()
    if user is None:
        raise NotFoundError(f"unknown user {user_id}")
    return user


def _record_event(db: Session, user_id: str, event: Event) -> bool:
    """Append *event* to the log; ``False`` when it is already there."""
    stmt = (
        upsert_insert(db, Checkin.__table__)
        .values(
            user_id=user_id,
            action=event.action,
            created_at=event.timestamp,
            latitude=event.latitude,
            longitude=event.longitude,
            is_synced=True,
            received_at=dt.datetime.now(dt.timezone.utc),
        )
        .on_conflict_do_nothing(index_elements=["user_id", "action", "created_at"])
        .returning(Checkin.__table__.c.id)
    )
    return db.execute(stmt).scalar() is not None


def _apply_batch(db: Session, user_id: str, batches: Sequence[DayBatch]) -> tuple[SyncResult, MatchResult]:
    _lock_user(db, user_id)

    result = SyncResult()
    fresh: List[DayBatch] = []
    for batch in batches:
        accepted = [event for event in batch.events if _record_event(db, user_id, event)]
        result.synced_count += len(batch.events)
        result.accepted_count += len(accepted)
        result.duplicate_count += len(batch.events) - len(accepted)
        if accepted:
            fresh.append(DayBatch(date=batch.date, events=accepted))

    match = match_day_batches(db, user_id, fresh)
    result.rejected_in_count = match.rejected_in
    result.dates = sorted(match.touched_dates)
    return result, match


def _record_metrics(result: SyncResult, match: MatchResult) -> None:
    observability.attendance_events_ingested_total.labels(result="accepted").inc(result.accepted_count)
    observability.attendance_events_ingested_total.labels(result="duplicate").inc(result.duplicate_count)
    observability.attendance_sessions_created_total.labels(kind="checkin").inc(match.created)
    observability.attendance_sessions_created_total.labels(kind="orphan").inc(match.orphans)
    observability.attendance_midnight_closures_total.inc(match.midnight_closures)
    observability.attendance_rejected_checkins_total.inc(match.rejected_in)


def incremental_sync(
    db: Session,
    user_id: str,
    events: Sequence[Event],
    *,
    max_attempts: Optional[int] = None,
) -> SyncResult:
    """Persist a device batch and reconcile its sessions in one transaction.

    The batch is validated before anything is written. Session-number races
    roll back and replay the whole batch; events already committed by a
    previous attempt or an earlier sync are recognised by the event log's
    unique key and not applied twice.
    """
    batches = normalize_batch(events)
    attempts = max_attempts or settings.sync_max_attempts

    for attempt in range(1, attempts + 1):
        try:
            result, match = _apply_batch(db, user_id, batches)
            db.commit()
        except (IntegrityError, SessionSlotConflict) as exc:
            db.rollback()
            observability.attendance_sync_retries_total.inc()
            logger.warning(
                "sync_session_conflict",
                extra={"user_id": user_id, "attempt": attempt},
                exc_info=not isinstance(exc, SessionSlotConflict),
            )
            continue
        except DBAPIError as exc:
            db.rollback()
            if isinstance(exc, OperationalError) or exc.connection_invalidated:
                observability.attendance_sync_failures_total.labels(reason="transient").inc()
                logger.error("sync_storage_unavailable", extra={"user_id": user_id, "attempt": attempt})
                raise TransientStorageError("storage temporarily unavailable") from exc
            observability.attendance_sync_failures_total.labels(reason="storage").inc()
            raise
        except Exception:
            db.rollback()
            raise

        _record_metrics(result, match)
        logger.info(
            "sync_applied",
            extra={"user_id": user_id, "attempt": attempt},
        )
        return result

    observability.attendance_sync_failures_total.labels(reason="conflict").inc()
    logger.error("sync_conflict_exhausted", extra={"user_id": user_id, "attempt": attempts})
    raise SessionConflictError(f"could not allocate a session for {user_id} after {attempts} attempts")
