"""Device sync endpoints: count check, incremental sync and full history."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from attendance_api.core.deps import authenticate_device
from attendance_api.core.errors import AttendanceError, http_error
from attendance_api.db.session import get_db
from attendance_api.schemas.sync import (
    CheckinRead,
    CountRequest,
    CountResponse,
    DeviceCredentials,
    SyncRequest,
    SyncResponse,
)
from attendance_api.services.sync import check_count, full_history, incremental_sync

router = APIRouter(prefix="/api/checkin", tags=["checkin"])


@router.post("/sync", response_model=SyncResponse)
def sync_checkins(payload: SyncRequest, db: Session = Depends(get_db)) -> SyncResponse:
    authenticate_device(db, payload.user_id, payload.passkey)
    try:
        result = incremental_sync(db, payload.user_id, [item.to_event() for item in payload.checkins])
    except AttendanceError as exc:
        raise http_error(exc) from exc
    return SyncResponse.model_validate(result)


@router.post("/count", response_model=CountResponse)
def count_checkins(payload: CountRequest, db: Session = Depends(get_db)) -> CountResponse:
    """Tell the device whether to push, pull everything, or do nothing."""
    authenticate_device(db, payload.user_id, payload.passkey)
    return CountResponse.model_validate(check_count(db, payload.user_id, payload.local_count))


@router.post("/full-sync", response_model=List[CheckinRead])
def full_sync(payload: DeviceCredentials, db: Session = Depends(get_db)) -> List[CheckinRead]:
    authenticate_device(db, payload.user_id, payload.passkey)
    return [CheckinRead.model_validate(row) for row in full_history(db, payload.user_id)]
