"""
Reservation ledger: the single authority on whether an interval can be held.

``reserve`` runs its availability check and insert under a per-mentor lock
and inside one transaction that row-locks the mentor profile, so two
concurrent requests for overlapping intervals cannot both win.
"""
import logging
from datetime import date, datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from mentor_booking.core.config import BookingConfig, get_booking_config
from mentor_booking.core.database import utcnow
from mentor_booking.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    SlotUnavailableError,
    ValidationError,
)
from mentor_booking.core.logging_utils import log_business_event
from mentor_booking.core.validations import parse_hhmm
from mentor_booking.booking.crud import availability as availability_crud
from mentor_booking.booking.crud import sessions as sessions_crud
from mentor_booking.booking.crud import users as users_crud
from mentor_booking.booking.models import (
    MeetingType,
    MentoringSession,
    SessionStatus,
    UserRole,
)
from mentor_booking.booking.schemas.sessions import (
    AvailabilityResult,
    BookingRequest,
    ReservationStatusResponse,
    ReserveResponse,
    SessionListResponse,
    SessionRead,
)
from mentor_booking.booking.services.expiry_reaper import ExpiryReaper
from mentor_booking.booking.services.mentor_locks import MentorLockRegistry, mentor_locks
from mentor_booking.booking.services.slot_generator import day_of_week_for

logger = logging.getLogger(__name__)

REASON_BOOKED = "already booked"
REASON_RESERVED = "temporarily reserved"

CENTS = Decimal("0.01")


def compute_price(duration_minutes: int, hourly_rate) -> Decimal:
    """(duration / 60) * hourly rate, rounded to the cent"""
    rate = Decimal(str(hourly_rate))
    return (Decimal(duration_minutes) / Decimal(60) * rate).quantize(CENTS, rounding=ROUND_HALF_UP)


class ReservationLedger:
    def __init__(
        self,
        session: AsyncSession,
        config: Optional[BookingConfig] = None,
        clock: Callable = utcnow,
        locks: Optional[MentorLockRegistry] = None,
    ):
        self.session = session
        self.config = config or get_booking_config()
        self.clock = clock
        self.locks = locks if locks is not None else mentor_locks
        self.reaper = ExpiryReaper(session, clock)

    async def check_available(
        self,
        mentor_id: int,
        session_date: date,
        start_time: str,
        end_time: str,
        requesting_user_id: Optional[int] = None,
    ) -> AvailabilityResult:
        """
        Tagged availability answer for a candidate interval.

        Sweeps expired holds first so they do not falsely block the interval.
        """
        await self.reaper.sweep()
        return await self._evaluate(
            mentor_id,
            session_date,
            parse_hhmm(start_time),
            parse_hhmm(end_time),
            requesting_user_id,
        )

    async def _evaluate(
        self, mentor_id, session_date, start, end, requesting_user_id
    ) -> AvailabilityResult:
        now = self.clock()
        overlapping = await sessions_crud.find_overlapping_sessions(
            self.session, mentor_id, session_date, start, end
        )

        if any(item.status == SessionStatus.confirmed for item in overlapping):
            return AvailabilityResult(available=False, reason=REASON_BOOKED)

        live_holds = [
            item
            for item in overlapping
            if item.status == SessionStatus.reserved
            and item.reservation_expires is not None
            and item.reservation_expires > now
        ]
        if not live_holds:
            return AvailabilityResult(available=True)

        if requesting_user_id is not None:
            own = next((item for item in live_holds if item.mentee_id == requesting_user_id), None)
            if own is not None:
                return AvailabilityResult(
                    available=True,
                    reserved_for_current_user=True,
                    reservation_expires=own.reservation_expires,
                    session_id=own.id,
                )

        return AvailabilityResult(
            available=False,
            reason=REASON_RESERVED,
            expires_at=live_holds[0].reservation_expires,
        )

    async def reserve(self, request: BookingRequest, mentee_id: int) -> ReserveResponse:
        """
        Hold an interval for ``mentee_id`` for ``hold_minutes``.

        Raises:
            ValidationError: duration outside the configured bounds, or the
                interval does not fit the referenced availability window
            NotFoundError: mentor, mentee, pricing or window missing
            SlotUnavailableError: interval booked or held by someone else
        """
        self._check_duration(request.duration)
        start = parse_hhmm(request.start_time)
        end = parse_hhmm(request.end_time)

        mentee = await users_crud.get_user_by_id(self.session, mentee_id)
        if not mentee:
            raise NotFoundError("Mentee", str(mentee_id))
        mentor = await users_crud.get_user_by_id(self.session, request.mentor_id)
        if not mentor or mentor.role != UserRole.mentor:
            raise NotFoundError("Mentor", str(request.mentor_id))
        if mentor.id == mentee.id:
            raise ValidationError("You cannot book a session with yourself")

        window = await availability_crud.get_time_slot(
            self.session, request.availability_id, request.mentor_id
        )
        if not window:
            raise NotFoundError("Availability slot", str(request.availability_id))
        if window.day_of_week != day_of_week_for(request.date):
            raise ValidationError(
                "Date does not fall on the availability window's day",
                field_errors={"date": ["Date does not match the selected availability"]},
            )
        if start < window.start_time or end > window.end_time:
            raise ValidationError(
                "Requested time is outside the availability window",
                field_errors={"start_time": ["Outside the selected availability window"]},
            )

        await self.reaper.sweep()

        async with self.locks.get(request.mentor_id):
            try:
                profile = await users_crud.get_mentor_profile(
                    self.session, request.mentor_id, for_update=True
                )
                if not profile:
                    raise NotFoundError("Mentor profile", str(request.mentor_id))
                rate = profile.hourly_rate(request.meeting_type.value)
                if rate is None:
                    raise NotFoundError(
                        "Pricing", f"{request.mentor_id}/{request.meeting_type.value}"
                    )

                availability = await self._evaluate(
                    request.mentor_id, request.date, start, end, mentee_id
                )
                if not availability.available:
                    raise SlotUnavailableError(availability.reason, availability.expires_at)

                if availability.reserved_for_current_user:
                    existing = await sessions_crud.get_session_by_id(
                        self.session, availability.session_id
                    )
                    if existing.start_time == start and existing.end_time == end:
                        response = self._reserve_response(existing, already_reserved=True)
                        await self.session.rollback()
                        return response
                    # A different interval overlapping the mentee's own hold
                    raise SlotUnavailableError(REASON_RESERVED, existing.reservation_expires)

                price = compute_price(request.duration, rate)
                new_session = MentoringSession(
                    mentor_id=request.mentor_id,
                    mentee_id=mentee_id,
                    availability_id=window.id,
                    date=request.date,
                    start_time=start,
                    end_time=end,
                    duration_minutes=request.duration,
                    meeting_type=MeetingType(request.meeting_type.value),
                    timezone=request.timezone,
                    price=price,
                    status=SessionStatus.reserved,
                    reservation_expires=self.clock() + timedelta(minutes=self.config.hold_minutes),
                )
                self.session.add(new_session)
                await self.session.commit()
                await self.session.refresh(new_session)
            except Exception:
                await self.session.rollback()
                raise

        log_business_event(
            "session_reserved",
            "session",
            new_session.id,
            {
                "mentor_id": new_session.mentor_id,
                "mentee_id": mentee_id,
                "date": new_session.date.isoformat(),
                "start_time": request.start_time,
                "end_time": request.end_time,
                "price": str(new_session.price),
            },
        )
        return self._reserve_response(new_session)

    def _check_duration(self, duration: int):
        low = self.config.min_duration_minutes
        high = self.config.max_duration_minutes
        if not low <= duration <= high:
            raise ValidationError(
                f"Duration must be between {low} and {high} minutes",
                field_errors={"duration": [f"Must be between {low} and {high} minutes"]},
            )

    @staticmethod
    def _reserve_response(item: MentoringSession, already_reserved: bool = False):
        return ReserveResponse(
            session_id=item.id,
            status=item.status.value,
            price=float(item.price),
            reservation_expires=item.reservation_expires,
            already_reserved=already_reserved,
        )

    async def get_reservation_status(
        self, session_id: int, user_id: int
    ) -> ReservationStatusResponse:
        """Lets the paying mentee poll whether the hold is still alive"""
        item = await sessions_crud.get_session_by_id(self.session, session_id)
        if not item:
            return ReservationStatusResponse(session_id=session_id, status="not_found")
        if item.mentee_id != user_id:
            raise AuthorizationError("You can only check your own reservations")

        if item.status == SessionStatus.reserved:
            expires: Optional[datetime] = item.reservation_expires
            if expires is None or expires <= self.clock():
                return ReservationStatusResponse(session_id=session_id, status="expired")
            return ReservationStatusResponse(
                session_id=session_id, status="reserved", expires_at=expires
            )
        return ReservationStatusResponse(session_id=session_id, status=item.status.value)

    async def list_mentee_sessions(self, mentee_id: int) -> SessionListResponse:
        items = await sessions_crud.list_mentee_sessions(self.session, mentee_id)
        return SessionListResponse(
            sessions=[SessionRead.model_validate(item) for item in items], total=len(items)
        )

    async def list_mentor_sessions(self, mentor_id: int) -> SessionListResponse:
        items = await sessions_crud.list_mentor_sessions(self.session, mentor_id)
        return SessionListResponse(
            sessions=[SessionRead.model_validate(item) for item in items], total=len(items)
        )
