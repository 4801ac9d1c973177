import json
from typing import Any
from cachetools import TTLCache

from .config import Settings

try:
    import redis.asyncio as redis  # Optional dependency
except ImportError:
    redis = None


class Cache:
    """
    Thin abstraction over Redis/in-memory so swapping is one flag away.
    Holds upstream market-trend responses and rate-limit buckets; valuation
    results are never stored. Every method is a coroutine so a Redis round
    trip never stalls the event loop.
    """
    def __init__(self, ttl_seconds: int, redis_url: str | None = None, maxsize: int = 4096):
        self.ttl_seconds = ttl_seconds
        self._local = TTLCache(maxsize=maxsize, ttl=ttl_seconds)
        self.backend = None
        if redis_url and redis is not None:
            self.backend = redis.from_url(redis_url, decode_responses=True)

    async def get(self, key: str) -> str | None:
        if self.backend is not None:
            return await self.backend.get(key)
        return self._local.get(key)

    async def set(self, key: str, value: str) -> None:
        if self.backend is not None:
            await self.backend.setex(key, self.ttl_seconds, value)
        else:
            self._local[key] = value

    async def get_json(self, key: str) -> Any | None:
        raw = await self.get(key)
        return json.loads(raw) if raw is not None else None

    async def set_json(self, key: str, value: Any) -> None:
        await self.set(key, json.dumps(value, separators=(",", ":"), ensure_ascii=False))

    async def incr(self, key: str, ttl_seconds: int = 60) -> int:
        """Counter with expiry; atomic on Redis, best-effort in memory."""
        if self.backend is not None:
            async with self.backend.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                pipe.expire(key, ttl_seconds)
                count, _ = await pipe.execute()
            return int(count)
        try:
            count = int(self._local.get(key) or 0) + 1
        except ValueError:
            count = 1
        self._local[key] = str(count)
        return count

    def clear(self) -> None:
        self._local.clear()

    async def aclose(self) -> None:
        if self.backend is not None:
            await self.backend.aclose()


def build_cache(settings: Settings) -> Cache:
    return Cache(
        ttl_seconds=settings.CACHE_TTL_SECONDS,
        redis_url=settings.REDIS_URL if settings.USE_REDIS else None,
    )
