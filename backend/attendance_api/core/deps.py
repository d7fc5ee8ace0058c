from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.orm import Session

from attendance_api.core.logging import bind_request_context, current_request_context
from attendance_api.core.security import hash_passkey
from attendance_api.core.token_store import DatabaseTokenStore, TokenStore
from attendance_api.db.session import get_db
from attendance_api.models.enums import AdminRole
from attendance_api.models.user import AdminUser, UserInfo

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/admin/login")
logger = logging.getLogger("security")


def log_auth_event(event: str, *, request: Optional[Request] = None, extra: Optional[dict] = None) -> None:
    payload = {"event": event, **current_request_context()}
    if request is not None and request.client is not None:
        payload["client"] = request.client.host
    if extra:
        payload.update(extra)
    logger.info(json.dumps(payload, default=str))


def get_token_store(db: Session = Depends(get_db)) -> TokenStore:
    return DatabaseTokenStore(db)


def get_current_admin(
    request: Request,
    token: str = Security(oauth2_scheme),
    db: Session = Depends(get_db),
    store: TokenStore = Depends(get_token_store),
) -> AdminUser:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    admin_id = store.validate(token)
    if admin_id is None:
        log_auth_event("token_invalid", request=request)
        raise credentials_exception

    admin = db.get(AdminUser, admin_id)
    if admin is None:
        log_auth_event("token_unknown_admin", request=request, extra={"admin_id": admin_id})
        raise credentials_exception
    bind_request_context(admin_id=admin.id)
    return admin


def get_full_admin(current_admin: AdminUser = Depends(get_current_admin)) -> AdminUser:
    """Admins with the ``admin`` role; department admins are refused."""
    if current_admin.role != AdminRole.ADMIN:
        log_auth_event("admin_role_required", extra={"admin_id": current_admin.id})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return current_admin


def ensure_can_manage(admin: AdminUser, user: UserInfo) -> None:
    """Department admins only see users of their own department."""
    if admin.role == AdminRole.ADMIN:
        return
    if admin.department is not None and admin.department == user.department:
        return
    log_auth_event(
        "department_scope_denied",
        extra={"admin_id": admin.id, "user_id": user.user_id},
    )
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not permitted for this user")


def authenticate_device(db: Session, user_id: str, passkey: str) -> UserInfo:
    """Check a device's ``(user_id, passkey)`` pair and return the user."""
    user = db.scalar(
        select(UserInfo).where(
            UserInfo.user_id == user_id,
            UserInfo.passkey_hash == hash_passkey(passkey),
        )
    )
    if user is None:
        log_auth_event("device_credentials_rejected", extra={"user_id": user_id})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid user or passkey")
    bind_request_context(user_id=user.user_id)
    return user
