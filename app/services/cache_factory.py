import logging
from typing import List, Optional

from fastapi import Request

from .cache import KeyValueBackend
from .cache_backends import InMemoryBackend, RedisBackend
from .cache_service import CacheService
from app.config import (
    CACHE_CAPACITY,
    CACHE_DEFAULT_TTL_SECONDS,
    CACHE_RECONNECT_INTERVAL_SECONDS,
    CACHE_REDIS_TIMEOUT_SECONDS,
    REDIS_URL,
)

logger = logging.getLogger(__name__)


class FallbackBackend(KeyValueBackend):
    """
    Routes every call to Redis when it reports ready, otherwise to a local
    in-memory backend. The decision is made per call, so traffic returns to
    Redis as soon as it recovers.

    Writes are never synchronized: entries written during fallback are
    invisible to Redis and vice versa. Deletes routed to Redis are also applied
    to the local store, so an invalidation never leaves a fallback entry behind. Cache entries are re-derivable, so this
    trades coherency for availability.
    """
    name = "redis+fallback"

    def __init__(self, primary: RedisBackend, fallback: InMemoryBackend):
        self.primary = primary
        self.fallback = fallback
        self._on_fallback: Optional[bool] = None

    async def _pick(self) -> KeyValueBackend:
        if await self.primary.ensure_ready():
            if self._on_fallback is not False:
                logger.info("Cache calls routed to Redis")
            self._on_fallback = False
            return self.primary
        if self._on_fallback is not True:
            logger.warning("Redis not ready; serving cache from in-memory fallback")
        self._on_fallback = True
        return self.fallback

    async def get(self, key: str) -> Optional[str]:
        return await (await self._pick()).get(key)

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        await (await self._pick()).set(key, value, ttl_seconds)

    async def delete(self, *keys: str) -> int:
        target = await self._pick()
        removed = await target.delete(*keys)
        if target is self.primary and keys:
            # The keys may have been listed from the local store just before
            # Redis came back; drop them there too so they cannot resurface.
            removed += await self.fallback.delete(*keys)
        return removed

    async def keys(self, pattern: str) -> List[str]:
        return await (await self._pick()).keys(pattern)

    async def exists(self, key: str) -> bool:
        return await (await self._pick()).exists(key)

    async def ttl(self, key: str) -> int:
        return await (await self._pick()).ttl(key)

    async def close(self) -> None:
        await self.primary.close()


def build_backend(
    redis_url: Optional[str] = REDIS_URL,
    capacity: int = CACHE_CAPACITY,
    timeout_seconds: float = CACHE_REDIS_TIMEOUT_SECONDS,
    reconnect_interval_seconds: float = CACHE_RECONNECT_INTERVAL_SECONDS,
) -> KeyValueBackend:
    """
    Decide once which backend the process uses:
      - no redis_url -> in-memory only; no connection is ever attempted
      - redis_url    -> Redis (connected lazily) with in-memory fallback
    """
    if not redis_url:
        logger.info("Redis disabled: using in-memory cache backend")
        return InMemoryBackend(capacity=capacity)

    return FallbackBackend(
        primary=RedisBackend(
            redis_url,
            timeout_seconds=timeout_seconds,
            reconnect_interval_seconds=reconnect_interval_seconds,
        ),
        fallback=InMemoryBackend(capacity=capacity),
    )


def build_cache_service(
    redis_url: Optional[str] = REDIS_URL,
    default_ttl_seconds: int = CACHE_DEFAULT_TTL_SECONDS,
    capacity: int = CACHE_CAPACITY,
) -> CacheService:
    return CacheService(
        build_backend(redis_url=redis_url, capacity=capacity),
        default_ttl_seconds=default_ttl_seconds,
    )


def local_backend_of(backend: KeyValueBackend) -> Optional[InMemoryBackend]:
    """The in-process part of a backend, if any (used by the expiry sweeper)."""
    if isinstance(backend, InMemoryBackend):
        return backend
    if isinstance(backend, FallbackBackend):
        return backend.fallback
    return None


# Dependency to get the cache service built at startup
def get_cache_service(request: Request) -> CacheService:
    return request.app.state.cache
