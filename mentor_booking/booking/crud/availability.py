"""Availability store - a mentor's recurring weekly windows"""
from typing import List, Optional

from sqlalchemy import and_
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from mentor_booking.core.config import BookingConfig, get_booking_config
from mentor_booking.core.database import db_operation
from mentor_booking.core.exceptions import (
    AvailabilityOverlapError,
    NotFoundError,
    ValidationError,
)
from mentor_booking.core.logging_utils import log_business_event
from mentor_booking.core.validations import format_hhmm, parse_hhmm
from mentor_booking.booking.models import WeeklyAvailability
from mentor_booking.booking.schemas.availability import TimeSlotCreate


def ranges_overlap(start_a, end_a, start_b, end_b) -> bool:
    """
    Three-way overlap test on half-open ranges [start, end).

    Touching ranges (end_a == start_b) do not overlap.
    """
    return (
        (start_b <= start_a < end_b)
        or (start_b < end_a <= end_b)
        or (start_a <= start_b and end_a >= end_b)
    )


@db_operation
async def list_weekly_availability(
    session: AsyncSession, mentor_id: int
) -> List[WeeklyAvailability]:
    result = await session.execute(
        select(WeeklyAvailability)
        .where(WeeklyAvailability.mentor_id == mentor_id)
        .order_by(WeeklyAvailability.day_of_week, WeeklyAvailability.start_time)
    )
    return list(result.scalars().all())


@db_operation
async def list_for_day(
    session: AsyncSession, mentor_id: int, day_of_week: int
) -> List[WeeklyAvailability]:
    result = await session.execute(
        select(WeeklyAvailability)
        .where(
            and_(
                WeeklyAvailability.mentor_id == mentor_id,
                WeeklyAvailability.day_of_week == day_of_week,
            )
        )
        .order_by(WeeklyAvailability.start_time)
    )
    return list(result.scalars().all())


@db_operation
async def get_time_slot(
    session: AsyncSession, slot_id: int, mentor_id: Optional[int] = None
) -> Optional[WeeklyAvailability]:
    query = select(WeeklyAvailability).where(WeeklyAvailability.id == slot_id)
    if mentor_id is not None:
        query = query.where(WeeklyAvailability.mentor_id == mentor_id)
    result = await session.execute(query)
    return result.scalar_one_or_none()


@db_operation
async def add_time_slot(
    session: AsyncSession,
    mentor_id: int,
    slot_data: TimeSlotCreate,
    config: Optional[BookingConfig] = None,
) -> WeeklyAvailability:
    """
    Add a weekly window for a mentor.

    Rejects windows overlapping any existing window on the same day.
    """
    start = parse_hhmm(slot_data.start_time)
    end = parse_hhmm(slot_data.end_time)
    if start >= end:
        raise ValidationError("End time must be after start time")

    existing = await list_for_day(session, mentor_id, slot_data.day_of_week)
    for slot in existing:
        if ranges_overlap(start, end, slot.start_time, slot.end_time):
            raise AvailabilityOverlapError(
                slot_data.day_of_week, format_hhmm(start), format_hhmm(end)
            )

    time_slot = WeeklyAvailability(
        mentor_id=mentor_id,
        day_of_week=slot_data.day_of_week,
        start_time=start,
        end_time=end,
        timezone=slot_data.timezone or (config or get_booking_config()).default_timezone,
    )
    session.add(time_slot)
    await session.commit()
    await session.refresh(time_slot)

    log_business_event(
        "availability_added",
        "availability",
        time_slot.id,
        {
            "mentor_id": mentor_id,
            "day_of_week": time_slot.day_of_week,
            "start_time": format_hhmm(start),
            "end_time": format_hhmm(end),
        },
    )
    return time_slot


@db_operation
async def delete_time_slot(session: AsyncSession, mentor_id: int, slot_id: int) -> None:
    """Delete one of the mentor's own windows; sessions booked against it stay"""
    time_slot = await get_time_slot(session, slot_id, mentor_id)
    if not time_slot:
        raise NotFoundError("Time slot", str(slot_id))

    await session.delete(time_slot)
    await session.commit()

    log_business_event(
        "availability_deleted",
        "availability",
        slot_id,
        {"mentor_id": mentor_id},
    )
