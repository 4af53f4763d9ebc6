from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from mentor_booking.core.config import RATE_LIMIT_BOOKING
from mentor_booking.core.database import get_session
from mentor_booking.core.dependencies import get_current_mentor, get_current_user
from mentor_booking.core.limits import limiter
from mentor_booking.booking import api
from mentor_booking.booking.models import User
from mentor_booking.booking.routers._results import as_response
from mentor_booking.booking.schemas.sessions import (
    AvailabilityCheckRequest,
    AvailabilityResult,
    BookingRequest,
    ReservationStatusResponse,
    ReserveResponse,
    SessionListResponse,
)

router = APIRouter(prefix="/sessions", tags=["Sessions"])


@router.post("/availability-check", response_model=AvailabilityResult)
async def check_availability(
    check: AvailabilityCheckRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return as_response(await api.check_availability(db, check, current_user.id))


@router.post("/reserve", response_model=ReserveResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(RATE_LIMIT_BOOKING)
async def reserve_session(
    request: Request,
    booking: BookingRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """
    Hold an interval while the mentee pays.

    The hold lasts RESERVATION_HOLD_MINUTES; retrying the same interval
    returns the existing hold with ``already_reserved`` set.
    """
    return as_response(await api.reserve(db, booking, current_user.id))


@router.get("/mine", response_model=SessionListResponse)
async def my_sessions(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return as_response(await api.list_mentee_sessions(db, current_user.id))


@router.get("/mentor", response_model=SessionListResponse)
async def mentor_sessions(
    current_user: User = Depends(get_current_mentor),
    db: AsyncSession = Depends(get_session),
):
    return as_response(await api.list_mentor_sessions(db, current_user.id))


@router.get("/{session_id}/reservation-status", response_model=ReservationStatusResponse)
async def reservation_status(
    session_id: int = Path(..., gt=0),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return as_response(await api.get_reservation_status(db, session_id, current_user.id))
