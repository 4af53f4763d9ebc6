from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from mentor_booking.core.database import get_session
from mentor_booking.core.dependencies import verify_cleanup_token
from mentor_booking.booking import api
from mentor_booking.booking.routers._results import as_response
from mentor_booking.booking.schemas.results import SweepResponse

router = APIRouter(prefix="/maintenance", tags=["Maintenance"])


@router.api_route("/cleanup", methods=["GET", "POST"], response_model=SweepResponse)
async def cleanup_expired_reservations(
    _: bool = Depends(verify_cleanup_token),
    db: AsyncSession = Depends(get_session),
):
    """Sweep expired holds on demand; for external schedulers"""
    return as_response(await api.run_cleanup(db))
