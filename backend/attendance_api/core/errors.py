"""Domain exceptions raised by the reconciliation services.

Routers translate these into HTTP responses; services never build responses.
"""

from __future__ import annotations

from fastapi import HTTPException


class AttendanceError(Exception):
    """Base class for attendance service errors."""


class SyncValidationError(AttendanceError):
    """A submitted batch is malformed; nothing from it was persisted."""


class SessionSlotConflict(AttendanceError):
    """A session number was taken by a concurrent writer.

    Raised inside the pipeline and handled by the sync retry loop.
    """

    def __init__(self, user_id: str, date, session_number: int) -> None:
        super().__init__(
            f"session slot {session_number} on {date} for {user_id} is already taken"
        )
        self.user_id = user_id
        self.date = date
        self.session_number = session_number


class SessionConflictError(AttendanceError):
    """Session number allocation kept conflicting after every retry."""


class TransientStorageError(AttendanceError):
    """The database could not complete the unit of work; the batch may be resent."""


class InvariantViolationError(AttendanceError):
    """A write would break the open-session or duration invariants."""


class NotFoundError(AttendanceError):
    """The referenced event, session or user does not exist."""


_STATUS_CODES = (
    (SyncValidationError, 422),
    (NotFoundError, 404),
    (SessionConflictError, 409),
    (InvariantViolationError, 409),
    (TransientStorageError, 503),
)


def http_error(exc: AttendanceError) -> HTTPException:
    """Map a service error onto the ``HTTPException`` a router should raise."""
    for error_type, status_code in _STATUS_CODES:
        if isinstance(exc, error_type):
            headers = {"Retry-After": "1"} if status_code == 503 else None
            return HTTPException(status_code=status_code, detail=str(exc), headers=headers)
    return HTTPException(status_code=500, detail="Internal error")
