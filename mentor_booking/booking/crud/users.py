from typing import Optional

from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from mentor_booking.core.database import db_operation
from mentor_booking.booking.models import User, MentorProfile


@db_operation
async def get_user_by_id(session: AsyncSession, user_id: int) -> Optional[User]:
    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


@db_operation
async def get_mentor_profile(
    session: AsyncSession, mentor_id: int, for_update: bool = False
) -> Optional[MentorProfile]:
    """
    Pricing profile of a mentor.

    With ``for_update`` the row is locked until the transaction ends
    (ignored by SQLite, which locks the whole database on write).
    """
    query = select(MentorProfile).where(MentorProfile.user_id == mentor_id)
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    return result.scalar_one_or_none()
