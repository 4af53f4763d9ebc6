"""Session payment - at most one per session, one per provider transaction"""
from enum import Enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Numeric,
    ForeignKey,
    Enum as SQLEnum,
)
from sqlalchemy.sql import func

from mentor_booking.core.database import Base, UTCDateTime


class PaymentStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"
    refunded = "refunded"


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)

    # NULL once the session was reaped: the payment survives as an orphan
    session_id = Column(
        Integer,
        ForeignKey("mentoring_sessions.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )

    # Payer (mentee) and recipient (mentor)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    recipient_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), default="INR", nullable=False)
    payment_method = Column(String(32), nullable=False, default="razorpay")

    status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.pending, nullable=False)

    # Provider payment id; duplicate deliveries resolve to the same row
    transaction_id = Column(String(255), nullable=False, unique=True)
    order_id = Column(String(255), nullable=True, index=True)

    payment_date = Column(UTCDateTime, nullable=True)

    created_at = Column(UTCDateTime, server_default=func.now())
    updated_at = Column(UTCDateTime, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return (
            f"<Payment(id={self.id}, session_id={self.session_id}, "
            f"amount={self.amount}, status={self.status})>"
        )
