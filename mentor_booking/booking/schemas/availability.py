from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from mentor_booking.booking.schemas._time import normalize_hhmm, normalize_timezone


class TimeSlotCreate(BaseModel):
    """A recurring weekly window offered by a mentor"""

    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday, 6 = Saturday")
    start_time: str = Field(..., description="HH:MM")
    end_time: str = Field(..., description="HH:MM")
    timezone: Optional[str] = Field(None, description="IANA timezone")

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def validate_time_format(cls, v):
        return normalize_hhmm(v)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        if v is None:
            return v
        return normalize_timezone(v)

    @model_validator(mode="after")
    def validate_range(self):
        if self.start_time >= self.end_time:
            raise ValueError("End time must be after start time")
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "day_of_week": 1,
                "start_time": "09:00",
                "end_time": "12:00",
                "timezone": "Asia/Calcutta",
            }
        }
    )


class WeeklyAvailabilityRead(BaseModel):
    id: int
    mentor_id: int
    day_of_week: int
    start_time: str
    end_time: str
    timezone: str

    model_config = ConfigDict(from_attributes=True)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def format_time(cls, v):
        return normalize_hhmm(v)


class WeeklyAvailabilityListResponse(BaseModel):
    mentor_id: int
    slots: List[WeeklyAvailabilityRead]
    total: int
