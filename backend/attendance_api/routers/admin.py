"""Administrator login and manual overrides of events, sessions and summaries."""

from __future__ import annotations

import datetime as dt
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Security, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from attendance_api.core.deps import (
    ensure_can_manage,
    get_current_admin,
    get_full_admin,
    get_token_store,
    log_auth_event,
    oauth2_scheme,
)
from attendance_api.core.errors import AttendanceError, http_error
from attendance_api.core.logging import bind_request_context
from attendance_api.core.security import verify_password
from attendance_api.core.token_store import TokenStore
from attendance_api.db.session import get_db
from attendance_api.models.attendance import AttendanceSession
from attendance_api.models.checkin import Checkin
from attendance_api.models.enums import AdminRole, CheckinAction
from attendance_api.models.user import AdminUser, UserInfo
from attendance_api.schemas.admin import (
    AdminCheckinCreate,
    CheckinUpdate,
    DepartmentStatRead,
    DepartmentStatsResponse,
    SessionUpdate,
    SummaryRecomputeRequest,
    TimeSettingsBatchResponse,
    TimeSettingsBatchUpdate,
    TimeSettingsStatusRead,
    TimeSettingsSyncResponse,
    UserTimeSettingRead,
)
from attendance_api.schemas.attendance import SessionRead, SummaryRead
from attendance_api.schemas.auth import AdminLoginRequest, AdminRead, TokenResponse
from attendance_api.schemas.sync import CheckinRead, SyncResponse
from attendance_api.services.admin_overrides import (
    CheckinPatch,
    SessionPatch,
    apply_session_patch,
    delete_checkin,
    delete_session,
    update_checkin,
)
from attendance_api.services.reporting import EMPTY_SUMMARY, CheckinFilter, department_stats, list_checkins
from attendance_api.services.summary import recompute_summary
from attendance_api.services.sync import incremental_sync
from attendance_api.services.time_settings import (
    ShiftUpdate,
    delete_time_settings,
    ensure_default_time_settings,
    list_user_time_settings,
    time_settings_status,
    update_time_settings,
)

router = APIRouter(prefix="/api/admin", tags=["admin"])
logger = logging.getLogger("attendance.admin")


def _get_user(db: Session, user_id: str) -> UserInfo:
    user = db.scalar(select(UserInfo).where(UserInfo.user_id == user_id))
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def _department_scope(admin: AdminUser) -> Optional[int]:
    if admin.role == AdminRole.ADMIN:
        return None
    if admin.department is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No department assigned")
    return admin.department


@router.post("/login", response_model=TokenResponse)
def admin_login(
    payload: AdminLoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    store: TokenStore = Depends(get_token_store),
) -> TokenResponse:
    admin = db.scalar(select(AdminUser).where(AdminUser.username == payload.username))
    if admin is None or not verify_password(payload.password, admin.hashed_password):
        log_auth_event("admin_login_failed", request=request, extra={"username": payload.username})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    bind_request_context(admin_id=admin.id)
    issued = store.issue(admin)
    db.commit()
    log_auth_event("admin_login", request=request, extra={"admin_id": admin.id})
    return TokenResponse(access_token=issued.access_token, expires_at=issued.expires_at)


@router.get("/me", response_model=AdminRead)
def admin_me(current_admin: AdminUser = Depends(get_current_admin)) -> AdminRead:
    return AdminRead.model_validate(current_admin)


@router.post("/logout")
def admin_logout(
    token: str = Security(oauth2_scheme),
    db: Session = Depends(get_db),
    store: TokenStore = Depends(get_token_store),
    current_admin: AdminUser = Depends(get_current_admin),
) -> dict:
    store.revoke(token)
    db.commit()
    return {"detail": "logged_out"}


@router.post("/checkins", response_model=SyncResponse, status_code=status.HTTP_201_CREATED)
def create_checkin(
    payload: AdminCheckinCreate,
    db: Session = Depends(get_db),
    current_admin: AdminUser = Depends(get_current_admin),
) -> SyncResponse:
    """Record an event for a user; it goes through the same pipeline as a device sync."""
    ensure_can_manage(current_admin, _get_user(db, payload.user_id))
    try:
        result = incremental_sync(db, payload.user_id, [payload.to_event()])
    except AttendanceError as exc:
        raise http_error(exc) from exc
    logger.info("admin_checkin_created", extra={"user_id": payload.user_id, "admin_id": current_admin.id})
    return SyncResponse.model_validate(result)


@router.get("/checkins", response_model=List[CheckinRead])
def list_admin_checkins(
    user_id: Optional[str] = Query(None),
    action: Optional[CheckinAction] = Query(None),
    date_from: Optional[dt.date] = Query(None),
    date_to: Optional[dt.date] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_admin: AdminUser = Depends(get_current_admin),
) -> List[CheckinRead]:
    checkin_filter = CheckinFilter(
        user_id=user_id,
        action=action,
        date_from=date_from,
        date_to=date_to,
        department=_department_scope(current_admin),
        limit=limit,
        offset=offset,
    )
    return [CheckinRead.model_validate(row) for row in list_checkins(db, checkin_filter)]


@router.patch("/checkins/{checkin_id}", response_model=CheckinRead)
def edit_checkin(
    checkin_id: int,
    payload: CheckinUpdate,
    db: Session = Depends(get_db),
    current_admin: AdminUser = Depends(get_current_admin),
) -> CheckinRead:
    checkin = db.get(Checkin, checkin_id)
    if checkin is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Checkin not found")
    ensure_can_manage(current_admin, _get_user(db, checkin.user_id))

    try:
        patch = CheckinPatch.from_mapping(payload.model_dump(exclude_unset=True))
        checkin = update_checkin(db, checkin_id=checkin_id, patch=patch)
    except AttendanceError as exc:
        db.rollback()
        raise http_error(exc) from exc
    db.commit()
    logger.info("admin_checkin_updated", extra={"user_id": checkin.user_id, "admin_id": current_admin.id})
    return CheckinRead.model_validate(checkin)


@router.delete("/checkins/{checkin_id}")
def remove_checkin(
    checkin_id: int,
    db: Session = Depends(get_db),
    current_admin: AdminUser = Depends(get_current_admin),
) -> dict:
    checkin = db.get(Checkin, checkin_id)
    if checkin is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Checkin not found")
    ensure_can_manage(current_admin, _get_user(db, checkin.user_id))
    delete_checkin(db, checkin_id=checkin_id)
    db.commit()
    logger.info("admin_checkin_deleted", extra={"user_id": checkin.user_id, "admin_id": current_admin.id})
    return {"detail": "deleted", "id": checkin_id}


@router.patch("/sessions/{session_id}", response_model=SessionRead)
def update_session(
    session_id: int,
    payload: SessionUpdate,
    db: Session = Depends(get_db),
    current_admin: AdminUser = Depends(get_current_admin),
) -> SessionRead:
    session = db.get(AttendanceSession, session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    ensure_can_manage(current_admin, _get_user(db, session.user_id))

    try:
        patch = SessionPatch.from_mapping(payload.model_dump(exclude_unset=True))
        session = apply_session_patch(db, session_id=session_id, patch=patch)
    except AttendanceError as exc:
        db.rollback()
        logger.warning(
            "admin_session_edit_rejected",
            extra={"admin_id": current_admin.id, "session_number": session.session_number},
        )
        raise http_error(exc) from exc
    db.commit()
    return SessionRead.model_validate(session)


@router.delete("/sessions/{session_id}")
def remove_session(
    session_id: int,
    db: Session = Depends(get_db),
    current_admin: AdminUser = Depends(get_current_admin),
) -> dict:
    session = db.get(AttendanceSession, session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    ensure_can_manage(current_admin, _get_user(db, session.user_id))
    delete_session(db, session_id=session_id)
    db.commit()
    return {"detail": "deleted", "id": session_id}


@router.post("/summaries/recompute", response_model=SummaryRead)
def recompute_day_summary(
    payload: SummaryRecomputeRequest,
    db: Session = Depends(get_db),
    current_admin: AdminUser = Depends(get_current_admin),
) -> SummaryRead:
    ensure_can_manage(current_admin, _get_user(db, payload.user_id))
    summary = recompute_summary(db, payload.user_id, payload.date)
    db.commit()
    return SummaryRead.model_validate(summary if summary is not None else EMPTY_SUMMARY)


@router.post("/time-settings/sync", response_model=TimeSettingsSyncResponse)
def sync_time_settings(
    db: Session = Depends(get_db),
    current_admin: AdminUser = Depends(get_current_admin),
) -> TimeSettingsSyncResponse:
    created = ensure_default_time_settings(db)
    db.commit()
    return TimeSettingsSyncResponse(
        created=created,
        status=TimeSettingsStatusRead.model_validate(time_settings_status(db)),
    )


@router.get("/time-settings/status", response_model=TimeSettingsStatusRead)
def get_time_settings_status(
    db: Session = Depends(get_db),
    current_admin: AdminUser = Depends(get_current_admin),
) -> TimeSettingsStatusRead:
    return TimeSettingsStatusRead.model_validate(time_settings_status(db))


@router.get("/time-settings", response_model=List[UserTimeSettingRead])
def get_user_time_settings(
    department: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_admin: AdminUser = Depends(get_full_admin),
) -> List[UserTimeSettingRead]:
    return [UserTimeSettingRead.model_validate(row) for row in list_user_time_settings(db, department)]


@router.put("/time-settings", response_model=TimeSettingsBatchResponse)
def put_user_time_settings(
    payload: TimeSettingsBatchUpdate,
    db: Session = Depends(get_db),
    current_admin: AdminUser = Depends(get_full_admin),
) -> TimeSettingsBatchResponse:
    updates = [
        ShiftUpdate(user_id=item.user_id, on_duty_time=item.on_duty_time, off_duty_time=item.off_duty_time)
        for item in payload.settings
    ]
    try:
        updated = update_time_settings(db, updates)
    except AttendanceError as exc:
        db.rollback()
        raise http_error(exc) from exc
    db.commit()
    logger.info("admin_time_settings_updated", extra={"admin_id": current_admin.id})
    return TimeSettingsBatchResponse(updated=updated)


@router.delete("/time-settings/{user_id}")
def remove_user_time_settings(
    user_id: str,
    db: Session = Depends(get_db),
    current_admin: AdminUser = Depends(get_full_admin),
) -> dict:
    try:
        delete_time_settings(db, user_id)
    except AttendanceError as exc:
        raise http_error(exc) from exc
    db.commit()
    return {"detail": "deleted", "user_id": user_id}


@router.get("/stats/departments", response_model=DepartmentStatsResponse)
def get_department_stats(
    db: Session = Depends(get_db),
    current_admin: AdminUser = Depends(get_current_admin),
) -> DepartmentStatsResponse:
    stats = department_stats(db, _department_scope(current_admin))
    return DepartmentStatsResponse(departments=[DepartmentStatRead.model_validate(row) for row in stats])
