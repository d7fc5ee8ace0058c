from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from attendance_api.core.deps import log_auth_event
from attendance_api.core.logging import bind_request_context
from attendance_api.core.security import hash_passkey
from attendance_api.db.session import get_db
from attendance_api.models.user import UserInfo
from attendance_api.schemas.auth import PasskeyVerifyRequest, UserProfile

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/verify", response_model=UserProfile)
def verify_passkey(
    payload: PasskeyVerifyRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> UserProfile:
    """Resolve a device passkey to the user it belongs to."""
    user = db.scalar(select(UserInfo).where(UserInfo.passkey_hash == hash_passkey(payload.passkey)))
    if user is None:
        log_auth_event("passkey_rejected", request=request)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid passkey")
    bind_request_context(user_id=user.user_id)
    return UserProfile.model_validate(user)
