from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from mentor_booking.core.config import RATE_LIMIT_BOOKING
from mentor_booking.core.database import get_session
from mentor_booking.core.dependencies import get_current_user, get_payment_gateway
from mentor_booking.core.limits import limiter
from mentor_booking.booking import api
from mentor_booking.booking.models import User
from mentor_booking.booking.routers._results import as_response
from mentor_booking.booking.schemas.payments import (
    ConfirmPaymentRequest,
    ConfirmPaymentResponse,
    CreateOrderRequest,
    OrderResponse,
    PaymentListResponse,
)
from mentor_booking.booking.services.payment_gateway import RazorpayGateway

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/orders", response_model=OrderResponse)
@limiter.limit(RATE_LIMIT_BOOKING)
async def create_order(
    request: Request,
    order_request: CreateOrderRequest,
    current_user: User = Depends(get_current_user),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_session),
):
    """Create a gateway order for a reserved session; returns the hold expiry for the countdown"""
    return as_response(
        await api.create_payment_order(db, order_request.session_id, current_user.id, gateway)
    )


@router.post("/confirm", response_model=ConfirmPaymentResponse)
async def confirm_payment(
    confirmation: ConfirmPaymentRequest,
    current_user: User = Depends(get_current_user),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_session),
):
    return as_response(
        await api.confirm_payment(
            db,
            confirmation.session_id,
            confirmation.payment_id,
            confirmation.order_id,
            confirmation.signature,
            current_user.id,
            gateway,
        )
    )


@router.get("/mine", response_model=PaymentListResponse)
async def my_payments(
    current_user: User = Depends(get_current_user),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_session),
):
    """Mentors see payments received, mentees payments made"""
    return as_response(await api.list_payments(db, current_user, gateway))
