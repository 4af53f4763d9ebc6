"""Session store queries used by the ledger, the reaper and the slot service"""
from datetime import date, datetime, time
from typing import List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from mentor_booking.core.database import db_operation
from mentor_booking.booking.models import MentoringSession, SessionStatus


def overlap_clause(start: time, end: time):
    """
    SQL form of the three-way overlap test against a candidate [start, end)
    """
    return or_(
        and_(MentoringSession.start_time <= start, MentoringSession.end_time > start),
        and_(MentoringSession.start_time < end, MentoringSession.end_time >= end),
        and_(MentoringSession.start_time >= start, MentoringSession.end_time <= end),
    )


def live_clause(now: datetime):
    """Sessions that currently block their interval"""
    return or_(
        MentoringSession.status == SessionStatus.confirmed,
        and_(
            MentoringSession.status == SessionStatus.reserved,
            MentoringSession.reservation_expires > now,
        ),
    )


@db_operation
async def get_session_by_id(
    session: AsyncSession, session_id: int
) -> Optional[MentoringSession]:
    result = await session.execute(
        select(MentoringSession).where(MentoringSession.id == session_id)
    )
    return result.scalar_one_or_none()


@db_operation
async def find_overlapping_sessions(
    session: AsyncSession,
    mentor_id: int,
    session_date: date,
    start: time,
    end: time,
) -> List[MentoringSession]:
    result = await session.execute(
        select(MentoringSession)
        .where(
            and_(
                MentoringSession.mentor_id == mentor_id,
                MentoringSession.date == session_date,
                overlap_clause(start, end),
            )
        )
        .order_by(MentoringSession.start_time)
    )
    return list(result.scalars().all())


@db_operation
async def get_blocking_sessions(
    session: AsyncSession, mentor_id: int, session_date: date, now: datetime
) -> List[MentoringSession]:
    """Confirmed sessions and unexpired holds for a mentor on one date"""
    result = await session.execute(
        select(MentoringSession)
        .where(
            and_(
                MentoringSession.mentor_id == mentor_id,
                MentoringSession.date == session_date,
                live_clause(now),
            )
        )
        .order_by(MentoringSession.start_time)
    )
    return list(result.scalars().all())


@db_operation
async def list_mentee_sessions(
    session: AsyncSession, mentee_id: int
) -> List[MentoringSession]:
    result = await session.execute(
        select(MentoringSession)
        .where(MentoringSession.mentee_id == mentee_id)
        .order_by(MentoringSession.date, MentoringSession.start_time)
    )
    return list(result.scalars().all())


@db_operation
async def list_mentor_sessions(
    session: AsyncSession, mentor_id: int
) -> List[MentoringSession]:
    result = await session.execute(
        select(MentoringSession)
        .where(MentoringSession.mentor_id == mentor_id)
        .order_by(MentoringSession.date, MentoringSession.start_time)
    )
    return list(result.scalars().all())
