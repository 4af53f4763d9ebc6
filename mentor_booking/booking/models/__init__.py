from mentor_booking.core.database import Base
from .users import User, UserRole, MentorProfile
from .availability import WeeklyAvailability
from .sessions import MentoringSession, SessionStatus, MeetingType
from .payments import Payment, PaymentStatus

__all__ = [
    "Base",
    "User",
    "UserRole",
    "MentorProfile",
    "WeeklyAvailability",
    "MentoringSession",
    "SessionStatus",
    "MeetingType",
    "Payment",
    "PaymentStatus",
]
