"""
Public booking operations.

Every function here catches failures at its boundary and returns either its
success model or an ``ErrorResult`` carrying the HTTP status to use, so
callers never need to catch.
"""
import logging
from datetime import date
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from mentor_booking.core.config import BookingConfig
from mentor_booking.core.database import utcnow
from mentor_booking.core.exceptions import BaseAppException, TransientStoreError
from mentor_booking.core.logging_utils import error_tracker
from mentor_booking.booking.crud import availability as availability_crud
from mentor_booking.booking.models import User
from mentor_booking.booking.schemas.availability import (
    TimeSlotCreate,
    WeeklyAvailabilityListResponse,
    WeeklyAvailabilityRead,
)
from mentor_booking.booking.schemas.results import ErrorResult, SweepResponse
from mentor_booking.booking.schemas.sessions import AvailabilityCheckRequest, BookingRequest
from mentor_booking.booking.schemas.slots import SlotSelectionRequest
from mentor_booking.booking.services.expiry_reaper import ExpiryReaper
from mentor_booking.booking.services.mentor_locks import MentorLockRegistry
from mentor_booking.booking.services.payment_gateway import RazorpayGateway
from mentor_booking.booking.services.payment_reconciler import PaymentReconciler
from mentor_booking.booking.services.reservation_ledger import ReservationLedger
from mentor_booking.booking.services.slot_generator import SlotService

logger = logging.getLogger(__name__)


def pydantic_field_errors(exc: PydanticValidationError) -> Dict[str, List[str]]:
    """Group pydantic errors by dotted field path; model-level errors go under "request" """
    fields: Dict[str, List[str]] = {}
    for error in exc.errors():
        key = ".".join(str(part) for part in error.get("loc", ())) or "request"
        message = error.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        fields.setdefault(key, []).append(message)
    return fields


def _find_session(args, kwargs) -> Optional[AsyncSession]:
    if isinstance(kwargs.get("session"), AsyncSession):
        return kwargs["session"]
    return next((arg for arg in args if isinstance(arg, AsyncSession)), None)


def boundary(operation: Callable):
    """Turn exceptions escaping ``operation`` into an ErrorResult"""

    @wraps(operation)
    async def wrapper(*args, **kwargs):
        name = operation.__name__
        try:
            return await operation(*args, **kwargs)
        except BaseAppException as e:
            await _rollback(args, kwargs)
            log = logger.error if e.status_code >= 500 else logger.info
            log(f"{name} failed: {e.error_code} - {e.message}", extra={"error_code": e.error_code})
            return ErrorResult(
                error=e.message,
                error_code=e.error_code,
                field_errors=getattr(e, "field_errors", None) or None,
                details=e.details,
                status_code=e.status_code,
            )
        except PydanticValidationError as e:
            fields = pydantic_field_errors(e)
            logger.info(f"{name} rejected invalid input: {fields}")
            return ErrorResult(
                error="Validation failed",
                error_code="VALIDATION_ERROR",
                field_errors=fields,
                details={"fields": fields},
                status_code=400,
            )
        except SQLAlchemyError as e:
            await _rollback(args, kwargs)
            logger.error(f"Store failure in {name}: {str(e)}", exc_info=True)
            error_tracker.track_error("STORE_ERROR", str(e), {"operation": name})
            store_error = TransientStoreError()
            return ErrorResult(
                error=store_error.message,
                error_code=store_error.error_code,
                status_code=store_error.status_code,
            )
        except Exception as e:
            await _rollback(args, kwargs)
            logger.error(f"Unexpected error in {name}: {str(e)}", exc_info=True)
            error_tracker.track_error("UNEXPECTED_ERROR", str(e), {"operation": name})
            return ErrorResult(error="Internal server error", error_code="INTERNAL_ERROR")

    return wrapper


async def _rollback(args, kwargs):
    session = _find_session(args, kwargs)
    if session is None:
        return
    try:
        await session.rollback()
    except SQLAlchemyError as e:
        logger.error(f"Rollback failed: {str(e)}")


# === Availability ===

@boundary
async def list_availability(session: AsyncSession, mentor_id: int):
    slots = await availability_crud.list_weekly_availability(session, mentor_id)
    return WeeklyAvailabilityListResponse(
        mentor_id=mentor_id,
        slots=[WeeklyAvailabilityRead.model_validate(slot) for slot in slots],
        total=len(slots),
    )


@boundary
async def add_availability(
    session: AsyncSession,
    mentor_id: int,
    data: Union[TimeSlotCreate, Dict[str, Any]],
    config: Optional[BookingConfig] = None,
):
    slot_data = data if isinstance(data, TimeSlotCreate) else TimeSlotCreate.model_validate(data)
    slot = await availability_crud.add_time_slot(session, mentor_id, slot_data, config)
    return WeeklyAvailabilityRead.model_validate(slot)


@boundary
async def delete_availability(session: AsyncSession, mentor_id: int, slot_id: int):
    await availability_crud.delete_time_slot(session, mentor_id, slot_id)
    return {"success": True, "message": "Time slot deleted successfully"}


# === Slots ===

@boundary
async def get_slots_for_date(
    session: AsyncSession,
    mentor_id: int,
    target_date: date,
    config: Optional[BookingConfig] = None,
    clock: Callable = utcnow,
):
    return await SlotService(session, config, clock).get_slots_for_date(mentor_id, target_date)


@boundary
async def select_slots(
    session: AsyncSession,
    mentor_id: int,
    data: Union[SlotSelectionRequest, Dict[str, Any]],
    config: Optional[BookingConfig] = None,
    clock: Callable = utcnow,
):
    selection = (
        data if isinstance(data, SlotSelectionRequest) else SlotSelectionRequest.model_validate(data)
    )
    return await SlotService(session, config, clock).select_slots(
        mentor_id, selection.date, selection.start_times
    )


# === Reservations ===

@boundary
async def check_availability(
    session: AsyncSession,
    data: Union[AvailabilityCheckRequest, Dict[str, Any]],
    user_id: Optional[int] = None,
    config: Optional[BookingConfig] = None,
    clock: Callable = utcnow,
):
    request = (
        data
        if isinstance(data, AvailabilityCheckRequest)
        else AvailabilityCheckRequest.model_validate(data)
    )
    return await ReservationLedger(session, config, clock).check_available(
        request.mentor_id, request.date, request.start_time, request.end_time, user_id
    )


@boundary
async def reserve(
    session: AsyncSession,
    data: Union[BookingRequest, Dict[str, Any]],
    mentee_id: int,
    config: Optional[BookingConfig] = None,
    clock: Callable = utcnow,
    locks: Optional[MentorLockRegistry] = None,
):
    # Schema validation happens before any store access
    request = data if isinstance(data, BookingRequest) else BookingRequest.model_validate(data)
    return await ReservationLedger(session, config, clock, locks).reserve(request, mentee_id)


@boundary
async def get_reservation_status(
    session: AsyncSession, session_id: int, user_id: int, clock: Callable = utcnow
):
    return await ReservationLedger(session, clock=clock).get_reservation_status(session_id, user_id)


@boundary
async def list_mentee_sessions(session: AsyncSession, mentee_id: int):
    return await ReservationLedger(session).list_mentee_sessions(mentee_id)


@boundary
async def list_mentor_sessions(session: AsyncSession, mentor_id: int):
    return await ReservationLedger(session).list_mentor_sessions(mentor_id)


# === Payments ===

@boundary
async def create_payment_order(
    session: AsyncSession,
    session_id: int,
    user_id: int,
    gateway: RazorpayGateway,
    config: Optional[BookingConfig] = None,
    clock: Callable = utcnow,
):
    return await PaymentReconciler(session, gateway, config, clock).create_order(session_id, user_id)


@boundary
async def confirm_payment(
    session: AsyncSession,
    session_id: int,
    payment_id: str,
    order_id: str,
    signature: str,
    user_id: int,
    gateway: RazorpayGateway,
    clock: Callable = utcnow,
):
    return await PaymentReconciler(session, gateway, clock=clock).confirm_from_client_callback(
        session_id, payment_id, order_id, signature, user_id
    )


@boundary
async def handle_payment_webhook(
    session: AsyncSession,
    raw_body: bytes,
    signature: Optional[str],
    gateway: RazorpayGateway,
    clock: Callable = utcnow,
):
    return await PaymentReconciler(session, gateway, clock=clock).confirm_from_webhook(
        raw_body, signature
    )


@boundary
async def list_payments(session: AsyncSession, user: User, gateway: RazorpayGateway):
    return await PaymentReconciler(session, gateway).list_payments_for_user(user)


# === Maintenance ===

@boundary
async def run_cleanup(session: AsyncSession, clock: Callable = utcnow):
    result = await ExpiryReaper(session, clock).sweep()
    return SweepResponse(
        deleted_count=result.deleted_count,
        total_processed=result.total_processed,
        message=f"Cleaned up {result.deleted_count} expired reservations",
    )
