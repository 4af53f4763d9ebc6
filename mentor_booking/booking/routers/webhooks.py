from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from mentor_booking.core.database import get_session
from mentor_booking.core.dependencies import get_payment_gateway
from mentor_booking.booking import api
from mentor_booking.booking.routers._results import as_response
from mentor_booking.booking.schemas.results import WebhookAck
from mentor_booking.booking.services.payment_gateway import RazorpayGateway

router = APIRouter(prefix="/payments", tags=["Webhooks"])


@router.post("/webhook", response_model=WebhookAck)
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(None),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_session),
):
    """
    Razorpay webhook.

    400 missing signature or receipt, 401 bad signature, 500 missing secret.
    Duplicate deliveries are acknowledged without side effects.
    """
    raw_body = await request.body()
    return as_response(await api.handle_payment_webhook(db, raw_body, x_razorpay_signature, gateway))


@router.api_route("/webhook", methods=["GET", "HEAD"], include_in_schema=False)
async def razorpay_webhook_probe():
    return {"success": True}
