from datetime import date

from fastapi import APIRouter, Depends, Path, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from mentor_booking.core.config import RATE_LIMIT_DEFAULT
from mentor_booking.core.database import get_session
from mentor_booking.core.limits import limiter
from mentor_booking.booking import api
from mentor_booking.booking.routers._results import as_response
from mentor_booking.booking.schemas.slots import (
    DaySlotsResponse,
    SelectedInterval,
    SlotSelectionRequest,
)

router = APIRouter(prefix="/mentors", tags=["Slots"])


@router.get("/{mentor_id}/slots", response_model=DaySlotsResponse)
@limiter.limit(RATE_LIMIT_DEFAULT)
async def get_slots(
    request: Request,
    mentor_id: int = Path(..., gt=0),
    target_date: date = Query(..., alias="date", description="YYYY-MM-DD"),
    db: AsyncSession = Depends(get_session),
):
    """Bookable slots for one calendar date, each tagged booked or free"""
    return as_response(await api.get_slots_for_date(db, mentor_id, target_date))


@router.post("/{mentor_id}/slots/selection", response_model=SelectedInterval)
async def select_slots(
    selection: SlotSelectionRequest,
    mentor_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_session),
):
    """Merge picked slots into one interval; they must be adjacent and free"""
    return as_response(await api.select_slots(db, mentor_id, selection))
