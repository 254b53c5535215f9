from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI

from tablebook.app.core.config import settings
from tablebook.app.core.errors import register_error_handlers
from tablebook.app.core.log import configure_logging
from tablebook.app.core.redis_client import close_redis, init_redis
from tablebook.app.db.session import SessionLocal
from tablebook.app.services.sweeper import ReservationSweeper, make_sweep_tick
import tablebook.app.routers.health as health
import tablebook.app.routers.locations as locations
import tablebook.app.routers.reservations as reservations


def build_sweeper() -> ReservationSweeper:
    tick = make_sweep_tick(
        SessionLocal,
        grace=timedelta(minutes=settings.SWEEP_GRACE_MINUTES),
        lease_ms=int(settings.SWEEP_INTERVAL_SECONDS * 1000),
    )
    return ReservationSweeper(tick, settings.SWEEP_INTERVAL_SECONDS)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    await init_redis()
    sweeper = build_sweeper()
    app.state.sweeper = sweeper
    if settings.SWEEPER_ENABLED:
        sweeper.start()
    try:
        yield
    finally:
        sweeper.stop()
        await close_redis()


app = FastAPI(
    title="Tablebook Reservations API",
    lifespan=lifespan,
)
register_error_handlers(app)

app.include_router(health.router, prefix=settings.API_PREFIX)
app.include_router(locations.router, prefix=settings.API_PREFIX)
app.include_router(reservations.router, prefix=settings.API_PREFIX)
