from __future__ import annotations

from enum import Enum


class CheckinAction(str, Enum):
    IN = "IN"
    OUT = "OUT"


class SyncAction(str, Enum):
    NONE = "none"
    INCREMENTAL = "incremental"
    FULL = "full"


class AdminRole(str, Enum):
    ADMIN = "admin"
    DEPARTMENT = "department"
