"""Payment store queries"""
from typing import List, Optional

from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from mentor_booking.core.database import db_operation
from mentor_booking.booking.models import Payment, User, UserRole


@db_operation
async def get_payment_by_session(
    session: AsyncSession, session_id: int
) -> Optional[Payment]:
    result = await session.execute(select(Payment).where(Payment.session_id == session_id))
    return result.scalar_one_or_none()


@db_operation
async def get_payment_by_transaction(
    session: AsyncSession, transaction_id: str
) -> Optional[Payment]:
    result = await session.execute(
        select(Payment).where(Payment.transaction_id == transaction_id)
    )
    return result.scalar_one_or_none()


@db_operation
async def list_payments_for_user(session: AsyncSession, user: User) -> List[Payment]:
    """Mentors see what they received, everyone else what they paid"""
    if user.role == UserRole.mentor:
        condition = Payment.recipient_id == user.id
    else:
        condition = Payment.user_id == user.id

    result = await session.execute(
        select(Payment).where(condition).order_by(Payment.payment_date.desc(), Payment.id.desc())
    )
    return list(result.scalars().all())
