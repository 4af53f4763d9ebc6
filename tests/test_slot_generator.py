"""
Tests for slot generation and multi-slot selection.
"""
from datetime import date, time
from types import SimpleNamespace

import pytest

from mentor_booking.core.exceptions import ValidationError
from mentor_booking.booking.services.slot_generator import (
    day_of_week_for,
    generate_slots,
    merge_selection,
)
from tests.conftest import MONDAY


def window(window_id, start, end):
    return SimpleNamespace(id=window_id, start_time=start, end_time=end)


class TestDayOfWeek:
    def test_sunday_is_zero(self):
        assert day_of_week_for(date(2026, 11, 1)) == 0

    def test_monday_is_one(self):
        assert day_of_week_for(MONDAY) == 1

    def test_saturday_is_six(self):
        assert day_of_week_for(date(2026, 11, 7)) == 6


class TestGenerateSlots:
    def test_one_hour_window_gives_two_free_slots(self):
        slots = generate_slots([window(1, time(9, 0), time(10, 0))], [], 30)

        assert [(s.start_time, s.end_time) for s in slots] == [
            ("09:00", "09:30"),
            ("09:30", "10:00"),
        ]
        assert all(not s.is_booked for s in slots)
        assert all(s.availability_block_id == 1 for s in slots)

    def test_trailing_partial_step_is_dropped(self):
        slots = generate_slots([window(1, time(9, 0), time(10, 15))], [], 30)

        assert [s.start_time for s in slots] == ["09:00", "09:30"]
        assert slots[-1].end_time == "10:00"

    def test_window_shorter_than_step_gives_nothing(self):
        assert generate_slots([window(1, time(9, 0), time(9, 20))], [], 30) == []

    def test_no_windows(self):
        assert generate_slots([], [(time(9, 0), time(10, 0))], 30) == []

    def test_disjoint_windows_walked_independently(self):
        slots = generate_slots(
            [window(2, time(14, 0), time(15, 0)), window(1, time(9, 0), time(10, 0))],
            [],
            30,
        )

        assert [s.start_time for s in slots] == ["09:00", "09:30", "14:00", "14:30"]
        assert not any(s.start_time == "10:00" for s in slots)
        assert [s.availability_block_id for s in slots] == [1, 1, 2, 2]

    def test_slot_starting_inside_blocked_interval_is_booked(self):
        slots = generate_slots(
            [window(1, time(9, 0), time(11, 0))],
            [(time(9, 30), time(10, 30))],
            30,
        )

        booked = {s.start_time: s.is_booked for s in slots}
        assert booked == {"09:00": False, "09:30": True, "10:00": True, "10:30": False}

    def test_blocked_end_is_exclusive(self):
        slots = generate_slots(
            [window(1, time(9, 0), time(10, 0))],
            [(time(8, 30), time(9, 0))],
            30,
        )

        assert not slots[0].is_booked

    def test_slots_are_pairwise_disjoint_and_step_sized(self):
        slots = generate_slots(
            [window(1, time(8, 0), time(12, 45)), window(2, time(13, 0), time(17, 10))],
            [],
            30,
        )

        for slot in slots:
            assert slot.duration_minutes == 30
        for earlier, later in zip(slots, slots[1:]):
            assert earlier.end_time <= later.start_time

    def test_custom_step(self):
        slots = generate_slots([window(1, time(9, 0), time(10, 0))], [], 15)
        assert len(slots) == 4

    def test_rejects_non_positive_step(self):
        with pytest.raises(ValueError):
            generate_slots([window(1, time(9, 0), time(10, 0))], [], 0)


class TestMergeSelection:
    @pytest.fixture
    def day_slots(self):
        return generate_slots(
            [window(1, time(9, 0), time(10, 30)), window(2, time(10, 30), time(11, 30))],
            [(time(11, 0), time(11, 30))],
            30,
        )

    def test_adjacent_slots_merge(self, day_slots):
        start, end, duration, availability_id, count = merge_selection(
            day_slots, ["09:30", "09:00"]
        )

        assert (start, end, duration, availability_id, count) == ("09:00", "10:00", 60, 1, 2)

    def test_single_slot(self, day_slots):
        assert merge_selection(day_slots, ["10:00"])[:3] == ("10:00", "10:30", 30)

    def test_gap_is_rejected(self, day_slots):
        with pytest.raises(ValidationError):
            merge_selection(day_slots, ["09:00", "10:00"])

    def test_window_boundary_is_rejected(self, day_slots):
        # 10:00-10:30 and 10:30-11:00 touch but come from different windows
        with pytest.raises(ValidationError):
            merge_selection(day_slots, ["10:00", "10:30"])

    def test_booked_slot_is_rejected(self, day_slots):
        with pytest.raises(ValidationError) as exc_info:
            merge_selection(day_slots, ["10:30", "11:00"])
        assert "start_times" in exc_info.value.field_errors

    def test_unknown_slot_is_rejected(self, day_slots):
        with pytest.raises(ValidationError):
            merge_selection(day_slots, ["09:15"])

    def test_empty_selection_is_rejected(self, day_slots):
        with pytest.raises(ValidationError):
            merge_selection(day_slots, [])
