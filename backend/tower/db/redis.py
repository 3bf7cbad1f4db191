"""Shared Redis client. The generation gate keeps its cross-instance lock key here."""

import redis.asyncio as redis

from tower.config import settings

redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """The process-wide client, created on first use from REDIS_URL.

    Only needed when GENERATION_LOCK_BACKEND is "redis".
    """
    global redis_client
    if redis_client is None:
        redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return redis_client


async def close_redis() -> None:
    # Called from the app lifespan; a no-op when the local gate is in use
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None
