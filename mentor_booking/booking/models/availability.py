"""Mentor weekly availability - recurring day-of-week windows"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Time,
    ForeignKey,
    Index,
    UniqueConstraint,
    CheckConstraint,
)
from sqlalchemy.sql import func

from mentor_booking.core.database import Base, UTCDateTime


class WeeklyAvailability(Base):
    """
    One bookable window on a day of the week. Rows are never edited in
    place: a change is a delete followed by a new insert.
    """
    __tablename__ = "weekly_availability"

    id = Column(Integer, primary_key=True, index=True)

    mentor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    # 0 = Sunday ... 6 = Saturday
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    timezone = Column(String(64), nullable=False, default="Asia/Calcutta")

    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint(
            "mentor_id", "day_of_week", "start_time", name="uq_weekly_availability_start"
        ),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_weekly_availability_day"),
        CheckConstraint("start_time < end_time", name="ck_weekly_availability_range"),
        Index("ix_weekly_availability_mentor_day", "mentor_id", "day_of_week"),
    )

    def __repr__(self):
        return (
            f"<WeeklyAvailability(id={self.id}, mentor_id={self.mentor_id}, "
            f"day={self.day_of_week}, {self.start_time}-{self.end_time})>"
        )
