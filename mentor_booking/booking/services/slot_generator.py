"""
Turns a mentor's weekly windows into fixed-size bookable slots for one date
"""
import logging
from datetime import date, time
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from mentor_booking.core.config import BookingConfig, get_booking_config
from mentor_booking.core.database import utcnow
from mentor_booking.core.exceptions import ValidationError
from mentor_booking.core.validations import format_hhmm, from_minutes, to_minutes
from mentor_booking.booking.crud import availability as availability_crud
from mentor_booking.booking.crud import sessions as sessions_crud
from mentor_booking.booking.schemas.slots import DaySlotsResponse, SelectedInterval, TimeSlot
from mentor_booking.booking.services.expiry_reaper import ExpiryReaper

logger = logging.getLogger(__name__)


def day_of_week_for(target: date) -> int:
    """0 = Sunday ... 6 = Saturday"""
    return (target.weekday() + 1) % 7


def generate_slots(
    windows: Iterable,
    blocked_intervals: Iterable[Tuple[time, time]],
    step_minutes: int,
) -> List[TimeSlot]:
    """
    Walk every window in ``step_minutes`` steps.

    A trailing remainder shorter than one step is dropped. A slot is booked
    when its start falls inside [blocked_start, blocked_end) of any blocked
    interval. Windows are walked independently, so nothing is generated
    across the gap between two windows.

    Args:
        windows: Objects with ``id``, ``start_time`` and ``end_time``
        blocked_intervals: (start, end) pairs of confirmed sessions and live holds
        step_minutes: Slot size

    Returns:
        Slots sorted by start time
    """
    if step_minutes <= 0:
        raise ValueError("step_minutes must be positive")

    blocked = [(to_minutes(start), to_minutes(end)) for start, end in blocked_intervals]
    slots = []

    for window in windows:
        window_end = to_minutes(window.end_time)
        cursor = to_minutes(window.start_time)

        while cursor + step_minutes <= window_end:
            is_booked = any(start <= cursor < end for start, end in blocked)
            slot_end = cursor + step_minutes
            slots.append(
                TimeSlot(
                    start_time=format_hhmm(from_minutes(cursor)),
                    end_time=format_hhmm(from_minutes(slot_end)),
                    is_booked=is_booked,
                    availability_block_id=window.id,
                    duration_minutes=step_minutes,
                )
            )
            cursor = slot_end

    slots.sort(key=lambda slot: slot.start_time)
    return slots


def merge_selection(
    slots: Sequence[TimeSlot], selected_start_times: Sequence[str]
) -> Tuple[str, str, int, int, int]:
    """
    Merge the picked slots into one interval.

    The picks must exist, be free, come from one availability window and
    be pairwise adjacent (``a.end_time == b.start_time``).

    Returns:
        (start_time, end_time, duration_minutes, availability_id, slot_count)
    """
    if not selected_start_times:
        raise ValidationError("Select at least one slot")

    by_start = {slot.start_time: slot for slot in slots}
    picked = []
    for start in sorted(set(selected_start_times)):
        slot = by_start.get(start)
        if slot is None:
            raise ValidationError(
                f"No slot starts at {start}", field_errors={"start_times": [f"Unknown slot {start}"]}
            )
        if slot.is_booked:
            raise ValidationError(
                f"Slot {start} is not available",
                field_errors={"start_times": [f"Slot {start} is already taken"]},
            )
        picked.append(slot)

    window_ids = {slot.availability_block_id for slot in picked}
    if len(window_ids) > 1:
        raise ValidationError("Selected slots must belong to the same availability window")

    for previous, current in zip(picked, picked[1:]):
        if previous.end_time != current.start_time:
            raise ValidationError(
                "Selected slots must be consecutive",
                details={"gap_after": previous.end_time, "next_start": current.start_time},
            )

    duration = sum(slot.duration_minutes for slot in picked)
    return (
        picked[0].start_time,
        picked[-1].end_time,
        duration,
        picked[0].availability_block_id,
        len(picked),
    )


class SlotService:
    """Store-backed slot listing; sweeps expired holds before reading"""

    def __init__(
        self,
        session: AsyncSession,
        config: Optional[BookingConfig] = None,
        clock: Callable = utcnow,
    ):
        self.session = session
        self.config = config or get_booking_config()
        self.clock = clock

    async def get_slots_for_date(self, mentor_id: int, target_date: date) -> DaySlotsResponse:
        await ExpiryReaper(self.session, self.clock).sweep()

        day_of_week = day_of_week_for(target_date)
        windows = await availability_crud.list_for_day(self.session, mentor_id, day_of_week)
        if not windows:
            slots = []
        else:
            blocking = await sessions_crud.get_blocking_sessions(
                self.session, mentor_id, target_date, self.clock()
            )
            slots = generate_slots(
                windows,
                [(item.start_time, item.end_time) for item in blocking],
                self.config.slot_step_minutes,
            )

        logger.debug(
            f"Generated {len(slots)} slots for mentor {mentor_id} on {target_date.isoformat()}"
        )
        return DaySlotsResponse(
            mentor_id=mentor_id,
            date=target_date,
            day_of_week=day_of_week,
            slots=slots,
        )

    async def select_slots(
        self, mentor_id: int, target_date: date, start_times: Sequence[str]
    ) -> SelectedInterval:
        day = await self.get_slots_for_date(mentor_id, target_date)
        start, end, duration, availability_id, count = merge_selection(day.slots, start_times)
        return SelectedInterval(
            date=target_date,
            start_time=start,
            end_time=end,
            duration_minutes=duration,
            availability_id=availability_id,
            slot_count=count,
        )
