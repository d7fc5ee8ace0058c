"""Validate, order and bucket raw device events by UTC day."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from itertools import groupby
from typing import Iterable, List, Optional

from attendance_api.core.errors import SyncValidationError
from attendance_api.core.settings import settings
from attendance_api.models.enums import CheckinAction


@dataclass(frozen=True)
class Event:
    action: CheckinAction
    timestamp: dt.datetime
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    location: Optional[str] = None


@dataclass
class DayBatch:
    date: dt.date
    events: List[Event] = field(default_factory=list)


def day_of(instant: dt.datetime) -> dt.date:
    """Calendar day an instant belongs to (date component of its UTC value)."""
    return instant.astimezone(dt.timezone.utc).date()


def validate_event(event: Event, *, now: dt.datetime, max_skew: dt.timedelta) -> Event:
    try:
        action = CheckinAction(event.action)
    except ValueError:
        raise SyncValidationError(f"unknown action {event.action!r}") from None

    timestamp = event.timestamp
    if not isinstance(timestamp, dt.datetime):
        raise SyncValidationError("event timestamp must be a datetime")
    if timestamp.tzinfo is None or timestamp.utcoffset() is None:
        raise SyncValidationError(f"event timestamp {timestamp.isoformat()} has no UTC offset")
    if timestamp - now > max_skew:
        raise SyncValidationError(f"event timestamp {timestamp.isoformat()} is in the future")

    if event.latitude is not None and not -90.0 <= event.latitude <= 90.0:
        raise SyncValidationError(f"latitude {event.latitude} out of range")
    if event.longitude is not None and not -180.0 <= event.longitude <= 180.0:
        raise SyncValidationError(f"longitude {event.longitude} out of range")

    return Event(
        action=action,
        timestamp=timestamp.astimezone(dt.timezone.utc),
        latitude=event.latitude,
        longitude=event.longitude,
        location=event.location,
    )


def normalize_batch(
    events: Iterable[Event],
    *,
    now: Optional[dt.datetime] = None,
    max_skew: Optional[dt.timedelta] = None,
) -> List[DayBatch]:
    """Return the batch as per-day groups in date order.

    Any invalid event rejects the whole batch. Ordering is by timestamp and is
    stable, so events sharing an instant keep their submission order.
    """
    if now is None:
        now = dt.datetime.now(dt.timezone.utc)
    if max_skew is None:
        max_skew = dt.timedelta(minutes=settings.max_clock_skew_minutes)

    validated = [validate_event(event, now=now, max_skew=max_skew) for event in events]
    ordered = sorted(validated, key=lambda event: event.timestamp)

    return [
        DayBatch(date=day, events=list(group))
        for day, group in groupby(ordered, key=lambda event: day_of(event.timestamp))
    ]
