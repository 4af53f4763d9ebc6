from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from mentor_booking.core.config import RATE_LIMIT_DEFAULT
from mentor_booking.core.database import get_session
from mentor_booking.core.dependencies import get_current_mentor
from mentor_booking.core.limits import limiter
from mentor_booking.booking import api
from mentor_booking.booking.models import User
from mentor_booking.booking.routers._results import as_response
from mentor_booking.booking.schemas.availability import (
    TimeSlotCreate,
    WeeklyAvailabilityListResponse,
    WeeklyAvailabilityRead,
)

router = APIRouter(tags=["Availability"])


@router.get(
    "/mentors/{mentor_id}/availability",
    response_model=WeeklyAvailabilityListResponse,
)
@limiter.limit(RATE_LIMIT_DEFAULT)
async def get_mentor_availability(
    request: Request,
    mentor_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_session),
):
    """Public view of a mentor's weekly windows"""
    return as_response(await api.list_availability(db, mentor_id))


@router.get("/availability", response_model=WeeklyAvailabilityListResponse)
async def get_my_availability(
    current_user: User = Depends(get_current_mentor),
    db: AsyncSession = Depends(get_session),
):
    return as_response(await api.list_availability(db, current_user.id))


@router.post(
    "/availability",
    response_model=WeeklyAvailabilityRead,
    status_code=status.HTTP_201_CREATED,
)
async def add_availability_slot(
    slot: TimeSlotCreate,
    current_user: User = Depends(get_current_mentor),
    db: AsyncSession = Depends(get_session),
):
    """
    Add a recurring weekly window.

    - **day_of_week**: 0 = Sunday ... 6 = Saturday
    - **start_time** / **end_time**: HH:MM, start before end
    - **timezone**: IANA name, defaults to the service timezone

    Windows may touch but must not overlap others on the same day.
    """
    return as_response(await api.add_availability(db, current_user.id, slot))


@router.delete("/availability/{slot_id}")
async def delete_availability_slot(
    slot_id: int = Path(..., gt=0),
    current_user: User = Depends(get_current_mentor),
    db: AsyncSession = Depends(get_session),
):
    return as_response(await api.delete_availability(db, current_user.id, slot_id))
