"""Generation gate - single-flight guard for floor generation.

A run that finds the gate held exits immediately: somebody else is already
extending the tower. Two backends:

- LocalGenerationGate: non-blocking lock acquire, one process.
- RedisGenerationGate: ``SET NX EX`` in Redis, every process sharing the Redis.
"""

import logging
import threading
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)

DEFAULT_LOOKAHEAD = 10

# Delete the key only if we still own it
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


def should_generate(new_floor: int, max_floor: int, lookahead: int = DEFAULT_LOOKAHEAD) -> bool:
    """True when a player on ``new_floor`` is within ``lookahead`` floors of the top."""
    return new_floor > max_floor - lookahead


class LocalGenerationGate:
    def __init__(self):
        self._lock = threading.Lock()

    @property
    def is_held(self) -> bool:
        return self._lock.locked()

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[bool]:
        acquired = self._lock.acquire(blocking=False)
        try:
            yield acquired
        finally:
            if acquired:
                self._lock.release()


class RedisGenerationGate:
    def __init__(self, redis: aioredis.Redis, key: str = "tower:generation:lock", ttl: int = 300):
        self.redis = redis
        self.key = key
        self.ttl = ttl

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[bool]:
        token = uuid.uuid4().hex
        acquired = bool(await self.redis.set(self.key, token, nx=True, ex=self.ttl))
        try:
            yield acquired
        finally:
            if acquired:
                released = await self.redis.eval(_RELEASE_SCRIPT, 1, self.key, token)
                if not released:
                    logger.warning(
                        "Generation lock %s expired before release (ttl=%ss)", self.key, self.ttl
                    )
