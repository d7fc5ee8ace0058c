from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")
os.environ.setdefault("TIME_SETTINGS_SYNC_ENABLED", "false")

from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from attendance_api.core.security import hash_passkey
from attendance_api.models import Base
from attendance_api.models.user import UserInfo


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


def add_user(db, user_id: str = "u-100", passkey: str = "secret-100", department: int = 1) -> UserInfo:
    user = UserInfo(
        user_id=user_id,
        user_name=f"User {user_id}",
        department=department,
        department_name=f"Dept {department}",
        passkey_hash=hash_passkey(passkey),
    )
    db.add(user)
    db.commit()
    return user
