from datetime import date, datetime
from enum import Enum
from typing import List, Optional, Literal
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from mentor_booking.booking.schemas._time import normalize_hhmm, normalize_timezone
from mentor_booking.core.validations import parse_hhmm, to_minutes


class MeetingTypeEnum(str, Enum):
    chat = "chat"
    video = "video"
    call = "call"


class SessionStatusEnum(str, Enum):
    reserved = "reserved"
    confirmed = "confirmed"
    completed = "completed"
    cancelled = "cancelled"


class BookingRequest(BaseModel):
    """Mentee request to hold an interval with a mentor"""

    mentor_id: int = Field(..., gt=0)
    date: date
    start_time: str = Field(..., description="HH:MM")
    end_time: str = Field(..., description="HH:MM")
    availability_id: int = Field(..., gt=0, description="Weekly window the interval belongs to")
    meeting_type: MeetingTypeEnum
    duration: int = Field(..., gt=0, description="Duration in minutes; bounds come from BookingConfig")
    timezone: str

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def validate_time_format(cls, v):
        return normalize_hhmm(v)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        return normalize_timezone(v)

    @model_validator(mode="after")
    def validate_interval(self):
        start = to_minutes(parse_hhmm(self.start_time))
        end = to_minutes(parse_hhmm(self.end_time))
        if end <= start:
            raise ValueError("End time must be after start time")
        if end - start != self.duration:
            raise ValueError(
                f"Duration {self.duration} does not match interval length {end - start}"
            )
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "mentor_id": 7,
                "date": "2026-11-02",
                "start_time": "09:00",
                "end_time": "10:00",
                "availability_id": 3,
                "meeting_type": "video",
                "duration": 60,
                "timezone": "Asia/Calcutta",
            }
        }
    )


class AvailabilityCheckRequest(BaseModel):
    mentor_id: int = Field(..., gt=0)
    date: date
    start_time: str
    end_time: str

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def validate_time_format(cls, v):
        return normalize_hhmm(v)

    @model_validator(mode="after")
    def validate_interval(self):
        if self.end_time <= self.start_time:
            raise ValueError("End time must be after start time")
        return self


class AvailabilityResult(BaseModel):
    """
    Tagged availability answer:
    available | available + reserved_for_current_user | unavailable + reason
    """

    available: bool
    reserved_for_current_user: bool = False
    reservation_expires: Optional[datetime] = None
    session_id: Optional[int] = None
    reason: Optional[str] = None
    expires_at: Optional[datetime] = None


class SessionRead(BaseModel):
    id: int
    mentor_id: int
    mentee_id: int
    availability_id: Optional[int] = None
    date: date
    start_time: str
    end_time: str
    duration_minutes: int
    meeting_type: MeetingTypeEnum
    timezone: str
    price: float
    status: SessionStatusEnum
    reservation_expires: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def format_time(cls, v):
        return normalize_hhmm(v)

    @field_validator("meeting_type", "status", mode="before")
    @classmethod
    def enum_value(cls, v):
        return getattr(v, "value", v)


class SessionListResponse(BaseModel):
    success: bool = True
    sessions: List[SessionRead]
    total: int


class ReserveResponse(BaseModel):
    success: bool = True
    session_id: int
    status: SessionStatusEnum
    price: float
    reservation_expires: Optional[datetime] = None
    already_reserved: bool = False


class ReservationStatusResponse(BaseModel):
    success: bool = True
    session_id: int
    status: Literal["confirmed", "reserved", "expired", "not_found", "completed", "cancelled"]
    expires_at: Optional[datetime] = None
