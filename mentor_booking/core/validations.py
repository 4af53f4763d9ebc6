import re
from datetime import time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from mentor_booking.core.exceptions import ValidationError

TIME_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")


def parse_hhmm(value: str) -> time:
    """
    Parse a wall-clock "HH:MM" string (leading zero optional).
    """
    if not isinstance(value, str) or not TIME_PATTERN.match(value.strip()):
        raise ValidationError("Invalid time format. Use HH:MM")
    hours, minutes = value.strip().split(":")
    return time(int(hours), int(minutes))


def format_hhmm(value: time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def to_minutes(value: time) -> int:
    """Minutes since midnight"""
    return value.hour * 60 + value.minute


def from_minutes(total: int) -> time:
    if not 0 <= total < 24 * 60:
        raise ValidationError(f"{total} minutes is outside a single day")
    return time(total // 60, total % 60)


def validate_timezone(name: str) -> str:
    """Return the IANA zone name unchanged, or raise ValidationError"""
    if not name or not name.strip():
        raise ValidationError("Timezone cannot be empty")
    try:
        ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Unknown timezone '{name}'")
    return name.strip()
