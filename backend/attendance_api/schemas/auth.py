from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from attendance_api.models.enums import AdminRole
from attendance_api.schemas.base import ORMModel


class PasskeyVerifyRequest(ORMModel):
    passkey: str = Field(..., min_length=1, max_length=255)


class UserProfile(ORMModel):
    user_id: str
    user_name: Optional[str] = None
    department: int
    department_name: Optional[str] = None


class AdminLoginRequest(ORMModel):
    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)


class TokenResponse(ORMModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime


class AdminRead(ORMModel):
    id: int
    username: str
    role: AdminRole
    department: Optional[int] = None
