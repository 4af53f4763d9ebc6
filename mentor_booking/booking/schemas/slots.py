from datetime import date
from typing import List
from pydantic import BaseModel, Field, field_validator

from mentor_booking.booking.schemas._time import normalize_hhmm


class TimeSlot(BaseModel):
    """One fixed-size candidate slot carved out of an availability window"""

    start_time: str
    end_time: str
    is_booked: bool = False
    availability_block_id: int
    duration_minutes: int


class DaySlotsResponse(BaseModel):
    success: bool = True
    mentor_id: int
    date: date
    day_of_week: int
    slots: List[TimeSlot]


class SlotSelectionRequest(BaseModel):
    """Start times of the slots picked in the UI, any order"""

    date: date
    start_times: List[str] = Field(..., min_length=1)

    @field_validator("start_times", mode="before")
    @classmethod
    def validate_times(cls, v):
        if not isinstance(v, list):
            raise ValueError("start_times must be a list")
        return [normalize_hhmm(item) for item in v]


class SelectedInterval(BaseModel):
    """A run of adjacent slots merged into one bookable interval"""

    success: bool = True
    date: date
    start_time: str
    end_time: str
    duration_minutes: int
    availability_id: int
    slot_count: int
