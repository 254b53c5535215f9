import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from tablebook.app.core.config import settings

logger = logging.getLogger(__name__)

redis_client: redis.Redis | None = None


async def init_redis() -> None:
    """Initialise a shared Redis connection."""
    global redis_client
    redis_client = redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )


async def close_redis() -> None:
    """Close the Redis connection if it was initialised."""
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None


async def acquire_lease(key: str, token: str, ttl_ms: int) -> bool:
    """
    Take a short-lived lease on `key`. Without a reachable Redis every caller
    gets it, so only use this to guard idempotent work.
    """
    if redis_client is None:
        return True
    try:
        return bool(await redis_client.set(key, token, nx=True, px=ttl_ms))
    except RedisError as exc:
        logger.warning("Redis unavailable for lease %s, proceeding without it: %s", key, exc)
        return True
