from enum import Enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    JSON,
    ForeignKey,
    Enum as SQLEnum,
)
from sqlalchemy.sql import func

from mentor_booking.core.database import Base, UTCDateTime


class UserRole(str, Enum):
    """Role resolved by the upstream auth gateway"""
    mentor = "mentor"
    mentee = "mentee"
    admin = "admin"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    role = Column(SQLEnum(UserRole), default=UserRole.mentee, nullable=False)

    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role={self.role})>"


class MentorProfile(Base):
    """
    Pricing side of a mentor. Profile editing lives outside this service;
    the row doubles as the per-mentor lock taken while reserving.
    """
    __tablename__ = "mentor_profiles"

    id = Column(Integer, primary_key=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    # Hourly rate per meeting type: {"chat": 500, "video": 1200, "call": 900}
    pricing = Column(JSON, nullable=False, default=dict)
    currency = Column(String(3), default="INR", nullable=False)

    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now())

    def hourly_rate(self, meeting_type: str):
        rates = self.pricing or {}
        return rates.get(meeting_type)

    def __repr__(self):
        return f"<MentorProfile(id={self.id}, user_id={self.user_id})>"
