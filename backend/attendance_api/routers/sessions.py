from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from attendance_api.core.deps import authenticate_device
from attendance_api.db.session import get_db
from attendance_api.schemas.attendance import (
    DailySessionsRequest,
    DailySessionsResponse,
    MonthlyStatsRequest,
    MonthlyStatsResponse,
)
from attendance_api.services.reporting import daily_sessions, monthly_stats

router = APIRouter(prefix="/api/sessions", tags=["sessions"])
stats_router = APIRouter(prefix="/api/stats", tags=["stats"])


@router.post("/daily", response_model=DailySessionsResponse)
def get_daily_sessions(payload: DailySessionsRequest, db: Session = Depends(get_db)) -> DailySessionsResponse:
    """Sessions of one day plus its summary (zeroed when the day has none)."""
    authenticate_device(db, payload.user_id, payload.passkey)
    return DailySessionsResponse.model_validate(daily_sessions(db, payload.user_id, payload.date))


@stats_router.post("/monthly", response_model=MonthlyStatsResponse)
def get_monthly_stats(payload: MonthlyStatsRequest, db: Session = Depends(get_db)) -> MonthlyStatsResponse:
    authenticate_device(db, payload.user_id, payload.passkey)
    return MonthlyStatsResponse.model_validate(
        monthly_stats(db, payload.user_id, payload.year, payload.month)
    )
