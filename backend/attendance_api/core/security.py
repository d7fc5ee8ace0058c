from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt
from passlib.context import CryptContext

from attendance_api.core.settings import settings


pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def hash_passkey(passkey: str) -> str:
    """Digest used to store and look up device passkeys."""
    return hashlib.sha256(passkey.encode()).hexdigest()


def _expiry_delta(expires_delta: Optional[timedelta]) -> timedelta:
    if expires_delta is not None:
        return expires_delta
    minutes = settings.admin_token_expire_minutes
    if minutes <= 0:
        minutes = 60
    return timedelta(minutes=minutes)


def create_access_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None,
) -> tuple[str, str, datetime]:
    """Sign a token for *data*; returns ``(token, jti, expires_at)``."""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + _expiry_delta(expires_delta)
    jti = uuid.uuid4().hex
    to_encode.setdefault("iat", now)
    to_encode.update({"exp": expire, "jti": jti})
    token = jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.algorithm)
    return token, jti, expire


def decode_token(token: str) -> Dict[str, Any]:
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.algorithm])
