"""
Attendance workflow schemas (device requests and workflow/record responses).
"""
from datetime import date, datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator

from fieldops.utils.datetime_utils import ensure_utc


def _serialize_dt_utc(dt: Optional[datetime]) -> Optional[str]:
    """Serialize as ISO-8601 in UTC. SQLite returns naive datetimes, which are UTC by construction."""
    if dt is None:
        return None
    return ensure_utc(dt).isoformat()


DeviceErrorCode = Literal["PERMISSION_DENIED", "POSITION_UNAVAILABLE", "TIMEOUT"]


class LocationRequest(BaseModel):
    """
    What the device's location API produced: a fix (lat, lng, optional accuracy)
    or the error it reported. Exactly one of the two must be present.
    """
    lat: Optional[float] = Field(None, ge=-90, le=90, description="GPS latitude")
    lng: Optional[float] = Field(None, ge=-180, le=180, description="GPS longitude")
    accuracy: Optional[float] = Field(None, gt=0, description="Accuracy in meters")
    error: Optional[DeviceErrorCode] = Field(None, description="Device geolocation error code")
    error_message: Optional[str] = None

    @model_validator(mode="after")
    def check_fix_or_error(self) -> "LocationRequest":
        has_fix = self.lat is not None and self.lng is not None
        if self.error is None and not has_fix:
            raise ValueError("Provide lat and lng, or the device error code")
        if self.error is not None and has_fix:
            raise ValueError("Provide either a position or an error, not both")
        return self


class CustodyConfirmRequest(BaseModel):
    """Ammunition counted at the handover"""
    observed_ammo: int = Field(..., description="Rounds counted by the guard")
    notes: Optional[str] = Field(None, description="Required when fewer rounds than expected are counted")
    outgoing_guard_name: Optional[str] = Field(None, description="Guard handing the weapon over")


class CoordinatesDto(BaseModel):
    latitude: float
    longitude: float
    accuracy: Optional[float] = None

    model_config = ConfigDict(from_attributes=True)


class GeofenceDto(BaseModel):
    distance_meters: Optional[float] = None
    inside: bool

    model_config = ConfigDict(from_attributes=True)


class PendingCustodyDto(BaseModel):
    action: str
    weapon_id: int
    serial_number: str
    expected_ammo: int


class AttendanceRecordDto(BaseModel):
    """Attendance record output; datetimes in UTC"""
    id: int
    guard_id: int
    post_id: Optional[int] = None
    work_date: date
    check_in_at: datetime
    check_in_latitude: float
    check_in_longitude: float
    inside_geofence: bool
    distance_meters: Optional[float] = None
    status: str
    check_out_at: Optional[datetime] = None
    check_out_latitude: Optional[float] = None
    check_out_longitude: Optional[float] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("check_in_at", "check_out_at", when_used="always")
    def _serialize_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return _serialize_dt_utc(dt)


class WeaponLogEntryDto(BaseModel):
    """One custody handover"""
    id: int
    weapon_id: int
    guard_id: int
    post_id: Optional[int] = None
    action: str
    ammo_observed: int
    ammo_expected: int
    notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", when_used="always")
    def _serialize_datetime(self, dt: Optional[datetime]) -> Optional[str]:
        return _serialize_dt_utc(dt)


class WeaponLogListResponse(BaseModel):
    items: List[WeaponLogEntryDto]
    total: int


class WorkflowStateDto(BaseModel):
    """Where the guard's day stands and what the device may do next"""
    guard_id: int
    work_date: date
    state: str
    allowed_actions: List[str]
    check_in_fix: Optional[CoordinatesDto] = None
    check_out_fix: Optional[CoordinatesDto] = None
    geofence: Optional[GeofenceDto] = None
    pending_custody: Optional[PendingCustodyDto] = None
    last_error: Optional[str] = None
    record: Optional[AttendanceRecordDto] = None
    handover: Optional[WeaponLogEntryDto] = None


class OnDutyItemDto(AttendanceRecordDto):
    """Open record with guard and post names for the supervisor board"""
    guard_name: Optional[str] = None
    post_name: Optional[str] = None


class OnDutyListResponse(BaseModel):
    items: List[OnDutyItemDto]
    total: int
