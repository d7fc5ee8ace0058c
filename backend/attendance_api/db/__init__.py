from attendance_api.db.base import Base, IDMixin, TimestampMixin, UTCDateTime, as_utc, utcnow
from attendance_api.db.session import SessionLocal, engine, get_db

__all__ = [
    "Base",
    "IDMixin",
    "TimestampMixin",
    "UTCDateTime",
    "as_utc",
    "utcnow",
    "engine",
    "SessionLocal",
    "get_db",
]
