from datetime import time

from mentor_booking.core.exceptions import ValidationError
from mentor_booking.core.validations import parse_hhmm, format_hhmm, validate_timezone


def normalize_hhmm(value) -> str:
    """Pydantic-side wrapper: "9:00" -> "09:00", ValueError on bad input"""
    if isinstance(value, time):
        return format_hhmm(value)
    try:
        return format_hhmm(parse_hhmm(value))
    except ValidationError as e:
        raise ValueError(e.message)


def normalize_timezone(value: str) -> str:
    try:
        return validate_timezone(value)
    except ValidationError as e:
        raise ValueError(e.message)
