"""Request / response bodies of the device sync protocol."""

from __future__ import annotations

import datetime as dt
from typing import List, Optional

from pydantic import AliasChoices, AwareDatetime, ConfigDict, Field

from attendance_api.models.enums import CheckinAction, SyncAction
from attendance_api.schemas.base import ORMModel
from attendance_api.services.normalizer import Event


class DeviceCredentials(ORMModel):
    user_id: str = Field(..., min_length=1, max_length=255)
    passkey: str = Field(..., min_length=1, max_length=255)


class CheckinEventIn(ORMModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    action: CheckinAction
    created_at: AwareDatetime = Field(..., validation_alias=AliasChoices("created_at", "timestamp"))
    latitude: Optional[float] = Field(
        default=None, ge=-90, le=90, validation_alias=AliasChoices("latitude", "lat")
    )
    longitude: Optional[float] = Field(
        default=None, ge=-180, le=180, validation_alias=AliasChoices("longitude", "lon")
    )
    location: Optional[str] = Field(default=None, max_length=255)

    def to_event(self) -> Event:
        return Event(
            action=self.action,
            timestamp=self.created_at,
            latitude=self.latitude,
            longitude=self.longitude,
            location=self.location,
        )


class SyncRequest(DeviceCredentials):
    checkins: List[CheckinEventIn] = Field(default_factory=list, max_length=5000)


class SyncResponse(ORMModel):
    synced_count: int
    accepted_count: int
    duplicate_count: int
    rejected_in_count: int
    dates: List[dt.date] = Field(default_factory=list)


class CountRequest(DeviceCredentials):
    local_count: int = Field(..., ge=0)


class CountResponse(ORMModel):
    action: SyncAction
    server_count: int


class CheckinRead(ORMModel):
    id: int
    user_id: str
    action: CheckinAction
    created_at: dt.datetime
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_synced: bool
