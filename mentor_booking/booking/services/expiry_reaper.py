"""
Reclaims RESERVED sessions whose payment hold has lapsed.

Every booking-sensitive operation sweeps before it reads; ``ReaperTask``
additionally sweeps on a timer so staleness does not depend on traffic.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy import and_, delete, update
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mentor_booking.core.database import utcnow
from mentor_booking.core.logging_utils import error_tracker, log_business_event
from mentor_booking.booking.models import MentoringSession, Payment, SessionStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    deleted_count: int
    total_processed: int


class ExpiryReaper:
    """Hard-deletes expired holds; payments pointing at them become orphans"""

    def __init__(self, session: AsyncSession, clock: Callable = utcnow):
        self.session = session
        self.clock = clock

    async def sweep(self) -> SweepResult:
        now = self.clock()
        # Strict "<": a hold expiring exactly now is already reclaimable
        expired = and_(
            MentoringSession.status == SessionStatus.reserved,
            MentoringSession.reservation_expires < now,
        )

        result = await self.session.execute(select(MentoringSession.id).where(expired))
        expired_ids = list(result.scalars().all())
        if not expired_ids:
            return SweepResult(deleted_count=0, total_processed=0)

        await self.session.execute(
            update(Payment)
            .where(Payment.session_id.in_(expired_ids))
            .values(session_id=None)
        )
        deleted = await self.session.execute(
            delete(MentoringSession).where(
                and_(MentoringSession.id.in_(expired_ids), expired)
            )
        )
        await self.session.commit()

        sweep_result = SweepResult(
            deleted_count=deleted.rowcount or 0, total_processed=len(expired_ids)
        )
        log_business_event(
            "reservations_expired",
            "session",
            None,
            {
                "deleted_count": sweep_result.deleted_count,
                "session_ids": expired_ids,
            },
        )
        return sweep_result


class ReaperTask:
    """Background loop running a sweep every ``interval_seconds``"""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        interval_seconds: int,
        clock: Callable = utcnow,
    ):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self.clock = clock
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.interval_seconds <= 0:
            logger.info("Background reaper disabled")
            return
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="reservation-reaper")
        logger.info(f"Background reaper started, interval={self.interval_seconds}s")

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Background reaper stopped")

    async def run_once(self) -> SweepResult:
        async with self.session_factory() as session:
            return await ExpiryReaper(session, self.clock).sweep()

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                result = await self.run_once()
                if result.deleted_count:
                    logger.info(f"Background sweep removed {result.deleted_count} holds")
            except Exception as e:
                # Next tick retries; the loop itself must survive
                logger.error(f"Background sweep failed: {str(e)}", exc_info=True)
                error_tracker.track_error("REAPER_FAILURE", str(e))
