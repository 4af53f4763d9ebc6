"""Mentoring session - the reservation/booking record"""
from enum import Enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    Time,
    Numeric,
    Text,
    ForeignKey,
    Index,
    Enum as SQLEnum,
)
from sqlalchemy.sql import func

from mentor_booking.core.database import Base, UTCDateTime


class SessionStatus(str, Enum):
    """RESERVED -> CONFIRMED; COMPLETED/CANCELLED happen outside this core"""
    reserved = "reserved"
    confirmed = "confirmed"
    completed = "completed"
    cancelled = "cancelled"


class MeetingType(str, Enum):
    chat = "chat"
    video = "video"
    call = "call"


class MentoringSession(Base):
    __tablename__ = "mentoring_sessions"

    id = Column(Integer, primary_key=True, index=True)

    mentor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    mentee_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    # Window the interval was booked against; kept even if the window is later deleted
    availability_id = Column(
        Integer, ForeignKey("weekly_availability.id", ondelete="SET NULL"), nullable=True
    )

    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    meeting_type = Column(SQLEnum(MeetingType), nullable=False)
    timezone = Column(String(64), nullable=False, default="UTC")

    price = Column(Numeric(10, 2), nullable=False)

    status = Column(SQLEnum(SessionStatus), default=SessionStatus.reserved, nullable=False)

    # Set while RESERVED; cleared on confirmation
    reservation_expires = Column(UTCDateTime, nullable=True)

    # Post-completion feedback
    rating = Column(Integer, nullable=True)
    review = Column(Text, nullable=True)

    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_mentoring_sessions_mentor_date", "mentor_id", "date"),
        Index("ix_mentoring_sessions_mentee", "mentee_id"),
        Index("ix_mentoring_sessions_status_expiry", "status", "reservation_expires"),
    )

    def __repr__(self):
        return (
            f"<MentoringSession(id={self.id}, mentor_id={self.mentor_id}, date={self.date}, "
            f"{self.start_time}-{self.end_time}, status={self.status})>"
        )
