"""
Background finalization of reservations nobody showed up for.

Every tick finishes, in a single UPDATE, all pending reservations whose start
time is older than the grace period. The batch is all-or-nothing: if the
statement fails the transaction rolls back and the next tick picks the same
rows up again. Capacity is derived from pending reservations, so finishing a
row frees its seats without touching the location.
"""
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from uuid import UUID, uuid4

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tablebook.app.core import redis_client as redis_module
from tablebook.app.core.errors import store_errors
from tablebook.app.repositories import reservations as reservation_repo

logger = logging.getLogger(__name__)

SWEEPER_LEASE_KEY = "sweeper:lease"
SWEEPER_JOB_ID = "reservation_sweeper"


async def sweep_overdue_reservations(
    session: AsyncSession,
    *,
    now: datetime,
    grace: timedelta,
) -> list[UUID]:
    """Finish pending reservations that started before `now - grace`. Must run inside a transaction."""
    return await reservation_repo.finish_overdue(session, now - grace, now)


def make_sweep_tick(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    grace: timedelta,
    lease_ms: int,
    clock: Callable[[], datetime] = datetime.now,
) -> Callable[[], Awaitable[None]]:
    """Build the coroutine run on every sweeper tick."""
    token = str(uuid4())

    async def tick() -> None:
        # Another replica holds the lease for this interval.
        if not await redis_module.acquire_lease(SWEEPER_LEASE_KEY, token, lease_ms):
            return

        now = clock()
        async with store_errors(), session_factory() as session, session.begin():
            finished = await sweep_overdue_reservations(session, now=now, grace=grace)
        if finished:
            logger.info("Sweeper finished %d overdue reservation(s)", len(finished))

    return tick


class ReservationSweeper:
    """
    Runs `tick` on an AsyncIOScheduler with a fixed delay between runs.

    The interval trigger only bounds the first run; each run reschedules the
    job to `interval` after it ends, and `max_instances=1` keeps runs from
    overlapping. A failed run is logged by APScheduler and the job stays.
    """

    def __init__(self, tick: Callable[[], Awaitable[None]], interval: float) -> None:
        self._tick = tick
        self._interval = timedelta(seconds=interval)
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        if self.running:
            return
        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            self._run_once,
            "interval",
            seconds=self._interval.total_seconds(),
            id=SWEEPER_JOB_ID,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(scheduler.timezone),
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info("Reservation sweeper started (interval %ss)", self._interval.total_seconds())

    def stop(self) -> None:
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Reservation sweeper stopped")

    async def _run_once(self) -> None:
        try:
            await self._tick()
        finally:
            scheduler = self._scheduler
            if scheduler is not None and scheduler.running:
                scheduler.modify_job(
                    SWEEPER_JOB_ID,
                    next_run_time=datetime.now(scheduler.timezone) + self._interval,
                )
