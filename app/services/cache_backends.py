import asyncio
import logging
import time
from typing import Any, Callable, List, Optional

from redis import asyncio as aioredis
from redis.asyncio.retry import Retry
from redis.backoff import NoBackoff
from redis.exceptions import ConnectionError as RedisConnectionError, TimeoutError as RedisTimeoutError

from .cache import KeyValueBackend, TTL_MISSING, TTL_NO_EXPIRY
from .cache_keys import to_redis_glob
from .lru_cache import LRUCacheImpl, Clock

logger = logging.getLogger(__name__)

# Errors that mean "the store is unreachable", as opposed to a bad command.
CONNECTIVITY_ERRORS = (RedisConnectionError, RedisTimeoutError, asyncio.TimeoutError, OSError)


class InMemoryBackend(KeyValueBackend):
    """
    Process-local backend. Not shared across workers and lost on restart;
    it exists so caching keeps working when no shared store is available.
    """
    name = "memory"

    def __init__(self, capacity: int = 10_000, clock: Clock = time.monotonic):
        self._lru = LRUCacheImpl(capacity=capacity, clock=clock)

    async def get(self, key: str) -> Optional[str]:
        return self._lru.get(key)

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        self._lru.set(key, value, ttl_seconds)

    async def delete(self, *keys: str) -> int:
        return self._lru.delete(*keys)

    async def keys(self, pattern: str) -> List[str]:
        return self._lru.keys(pattern)

    async def exists(self, key: str) -> bool:
        return self._lru.exists(key)

    async def ttl(self, key: str) -> int:
        try:
            remaining = self._lru.ttl(key)
        except KeyError:
            return TTL_MISSING
        if remaining is None:
            return TTL_NO_EXPIRY
        # Round like Redis does when converting its millisecond TTL to seconds.
        return int(remaining + 0.5)

    def purge_expired(self) -> int:
        return self._lru.purge_expired()

    def __len__(self) -> int:
        return len(self._lru)


class RedisBackend(KeyValueBackend):
    """
    Redis adapter with a lazy connection.

    Nothing is opened at construction. ensure_ready() pings the server at most
    once per reconnect interval; failures are logged, never raised. Once ready,
    commands go straight to Redis and a connectivity error flips the adapter
    back to not-ready before the error propagates.
    """
    name = "redis"

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 0.5,
        reconnect_interval_seconds: float = 5.0,
        client: Any = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._timeout = timeout_seconds
        self._reconnect_interval = reconnect_interval_seconds
        self._clock = clock
        self._client = client if client is not None else aioredis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
            retry=Retry(NoBackoff(), 1),
        )
        self._ready = False
        self._last_attempt: Optional[float] = None

    @property
    def is_ready(self) -> bool:
        return self._ready

    async def ensure_ready(self) -> bool:
        if self._ready:
            return True
        now = self._clock()
        if self._last_attempt is not None and now - self._last_attempt < self._reconnect_interval:
            return False
        self._last_attempt = now
        try:
            await asyncio.wait_for(self._client.ping(), timeout=self._timeout)
        except Exception as ex:
            logger.error("Redis connection error: %s", ex)
            return False
        self._ready = True
        logger.info("Connected to Redis")
        return True

    def _mark_down(self, op: str, ex: BaseException) -> None:
        if self._ready:
            logger.warning("Redis %s failed, marking connection not ready: %s", op, ex)
        self._ready = False
        self._last_attempt = self._clock()

    async def _call(self, op: str, awaitable):
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except CONNECTIVITY_ERRORS as ex:
            self._mark_down(op, ex)
            raise

    async def get(self, key: str) -> Optional[str]:
        return await self._call("get", self._client.get(key))

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        if ttl_seconds is None:
            await self._call("set", self._client.set(key, value))
        else:
            await self._call("set", self._client.set(key, value, ex=ttl_seconds))

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self._call("delete", self._client.delete(*keys)))

    async def keys(self, pattern: str) -> List[str]:
        return await self._call("keys", self._scan(to_redis_glob(pattern)))

    async def _scan(self, match: str) -> List[str]:
        # SCAN may report a key more than once; keep first occurrence.
        found = [k async for k in self._client.scan_iter(match=match, count=500)]
        return list(dict.fromkeys(found))

    async def exists(self, key: str) -> bool:
        return int(await self._call("exists", self._client.exists(key))) == 1

    async def ttl(self, key: str) -> int:
        return int(await self._call("ttl", self._client.ttl(key)))

    async def close(self) -> None:
        try:
            await self._client.aclose()
        finally:
            self._ready = False
