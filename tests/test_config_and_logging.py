"""
Tests for booking configuration and the logging helpers.
"""
import json
import logging

import pytest

from mentor_booking.core.config import BookingConfig, get_booking_config, validate_config
from mentor_booking.core.logging_utils import ErrorTracker, JsonFormatter


class TestBookingConfig:
    def test_defaults(self):
        config = BookingConfig()

        assert config.hold_minutes == 20
        assert config.slot_step_minutes == 30
        assert config.currency == "INR"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"hold_minutes": 0},
            {"slot_step_minutes": 7},
            {"slot_step_minutes": 0},
            {"min_duration_minutes": 90, "max_duration_minutes": 60},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            BookingConfig(**kwargs)

    def test_environment_config_is_cached(self):
        assert get_booking_config() is get_booking_config()

    def test_validate_config_accepts_test_environment(self):
        validate_config()


class TestJsonFormatter:
    def make_record(self, **extra):
        record = logging.LogRecord(
            name="mentor_booking.test",
            level=logging.INFO,
            pathname=__file__,
            lineno=10,
            msg="Business event: %s",
            args=("session_reserved",),
            exc_info=None,
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_extra_fields_are_included(self):
        line = JsonFormatter().format(self.make_record(session_id=12, category="business_event"))
        entry = json.loads(line)

        assert entry["message"] == "Business event: session_reserved"
        assert entry["level"] == "INFO"
        assert entry["session_id"] == 12
        assert entry["category"] == "business_event"

    def test_unserializable_extra_is_stringified(self):
        entry = json.loads(JsonFormatter().format(self.make_record(payload=object())))

        assert entry["payload"].startswith("<object object")


class TestErrorTracker:
    def test_counts_by_type(self):
        tracker = ErrorTracker()
        tracker.track_error("ORPHANED_PAYMENT", "late payment")
        tracker.track_error("ORPHANED_PAYMENT", "late payment")
        tracker.track_error("REAPER_FAILURE", "db down")

        stats = tracker.get_stats()

        assert stats["error_counts"] == {"ORPHANED_PAYMENT": 2, "REAPER_FAILURE": 1}
        assert stats["total_errors"] == 3
        assert stats["unique_error_types"] == 2

    def test_history_is_bounded(self):
        tracker = ErrorTracker(max_history=5)
        for i in range(12):
            tracker.track_error("STORE_ERROR", f"failure {i}")

        assert len(tracker.last_errors) == 5
        assert tracker.last_errors[-1]["message"] == "failure 11"

    def test_reset(self):
        tracker = ErrorTracker()
        tracker.track_error("STORE_ERROR", "x")
        tracker.reset_stats()

        assert tracker.get_stats()["total_errors"] == 0
