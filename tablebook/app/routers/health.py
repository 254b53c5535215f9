from fastapi import APIRouter, Depends, HTTPException, Request
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from tablebook.app.core import redis_client as redis_module
from tablebook.app.core.errors import store_errors
from tablebook.app.db.session import get_session


router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz(request: Request) -> dict[str, bool]:
    """Liveness, plus whether this process's reservation sweeper is running."""
    sweeper = getattr(request.app.state, "sweeper", None)
    return {"ok": True, "sweeper": bool(sweeper and sweeper.running)}


@router.get("/readiness")
async def readiness(session: AsyncSession = Depends(get_session)) -> dict[str, bool]:
    """Ensure Postgres and Redis are reachable."""
    if redis_module.redis_client is None:
        raise HTTPException(status_code=503, detail="Redis unavailable")

    async with store_errors():
        await session.execute(text("SELECT 1 FROM location LIMIT 1"))
    try:
        await redis_module.redis_client.ping()
    except RedisError as exc:
        raise HTTPException(status_code=503, detail="Redis unavailable") from exc

    return {"ready": True}
