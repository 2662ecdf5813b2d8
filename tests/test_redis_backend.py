# tests/test_redis_backend.py
#
# Redis adapter and fallback routing, driven by a scripted client so no
# server is needed.

import asyncio

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.services.cache_backends import InMemoryBackend, RedisBackend
from app.services.cache_factory import FallbackBackend, build_backend, local_backend_of
from app.services.cache_service import CacheService


class _ScriptedRedis:
    """Just enough of redis.asyncio.Redis for the adapter, with switchable availability."""

    def __init__(self, up: bool = True):
        self.up = up
        self.store: dict[str, str] = {}
        self.calls: list[tuple] = []
        self.hang = False

    def _check(self):
        if not self.up:
            raise RedisConnectionError("Connection refused")

    async def ping(self):
        self.calls.append(("ping",))
        self._check()
        return True

    async def get(self, key):
        self.calls.append(("get", key))
        if self.hang:
            await asyncio.sleep(10)
        self._check()
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.calls.append(("set", key, value, ex))
        self._check()
        self.store[key] = value
        return True

    async def delete(self, *keys):
        self.calls.append(("delete",) + keys)
        self._check()
        return sum(1 for k in keys if self.store.pop(k, None) is not None)

    async def scan_iter(self, match=None, count=None):
        self.calls.append(("scan", match))
        self._check()
        prefix = match.rstrip("*")
        for k in list(self.store) + list(self.store):  # SCAN may repeat keys
            if k.startswith(prefix):
                yield k

    async def exists(self, key):
        self._check()
        return 1 if key in self.store else 0

    async def ttl(self, key):
        self._check()
        return 42 if key in self.store else -2

    async def aclose(self):
        self.calls.append(("aclose",))


def _adapter(client, clock, **kw):
    return RedisBackend("redis://example:6379/0", client=client, clock=clock, **kw)


@pytest.mark.asyncio
async def test_no_connection_attempt_until_first_use(clock):
    client = _ScriptedRedis()
    backend = _adapter(client, clock)
    assert client.calls == []
    assert backend.is_ready is False
    assert await backend.ensure_ready() is True
    assert client.calls == [("ping",)]


@pytest.mark.asyncio
async def test_failed_connect_is_logged_not_raised_and_throttled(clock, caplog):
    client = _ScriptedRedis(up=False)
    backend = _adapter(client, clock, reconnect_interval_seconds=5)

    assert await backend.ensure_ready() is False
    assert "Redis connection error" in caplog.text

    clock.advance(1)
    assert await backend.ensure_ready() is False
    assert client.calls.count(("ping",)) == 1

    client.up = True
    clock.advance(5)
    assert await backend.ensure_ready() is True
    assert client.calls.count(("ping",)) == 2


@pytest.mark.asyncio
async def test_connectivity_error_marks_not_ready_and_propagates(clock):
    client = _ScriptedRedis()
    backend = _adapter(client, clock)
    assert await backend.ensure_ready()

    client.up = False
    with pytest.raises(RedisConnectionError):
        await backend.get("k")
    assert backend.is_ready is False


@pytest.mark.asyncio
async def test_slow_call_times_out(clock):
    client = _ScriptedRedis()
    backend = _adapter(client, clock, timeout_seconds=0.05)
    assert await backend.ensure_ready()

    client.hang = True
    with pytest.raises(asyncio.TimeoutError):
        await backend.get("k")
    assert backend.is_ready is False


@pytest.mark.asyncio
async def test_commands_forwarded_with_expected_arguments(clock):
    client = _ScriptedRedis()
    backend = _adapter(client, clock)

    await backend.set("a", "1", 30)
    await backend.set("b", "2")
    assert ("set", "a", "1", 30) in client.calls
    assert ("set", "b", "2", None) in client.calls

    assert sorted(await backend.keys("*")) == ["a", "b"]
    assert await backend.delete() == 0
    assert not any(c[0] == "delete" for c in client.calls)
    assert await backend.delete("a", "zzz") == 1


@pytest.mark.asyncio
async def test_keys_escapes_redis_only_glob_syntax(clock):
    client = _ScriptedRedis()
    backend = _adapter(client, clock)
    await backend.keys("users?[1]:*")
    assert ("scan", r"users\?\[1\]:*") in client.calls


@pytest.mark.asyncio
async def test_close_releases_client(clock):
    client = _ScriptedRedis()
    backend = _adapter(client, clock)
    await backend.ensure_ready()
    await backend.close()
    assert ("aclose",) in client.calls
    assert backend.is_ready is False


@pytest.mark.asyncio
async def test_router_serves_from_fallback_while_redis_down(clock):
    client = _ScriptedRedis(up=False)
    router = FallbackBackend(_adapter(client, clock), InMemoryBackend(clock=clock))

    await router.set("k", "v", 60)
    assert await router.get("k") == "v"
    assert client.store == {}


@pytest.mark.asyncio
async def test_router_returns_to_redis_and_stores_stay_separate(clock):
    client = _ScriptedRedis(up=False)
    router = FallbackBackend(_adapter(client, clock, reconnect_interval_seconds=5), InMemoryBackend(clock=clock))

    await router.set("written-in-fallback", "local", 60)

    client.up = True
    clock.advance(5)
    assert await router.get("written-in-fallback") is None
    await router.set("written-in-redis", "shared", 60)
    assert client.store == {"written-in-redis": "shared"}
    assert await router.fallback.get("written-in-fallback") == "local"


@pytest.mark.asyncio
async def test_router_drops_to_fallback_after_a_connection_error(clock):
    client = _ScriptedRedis()
    router = FallbackBackend(_adapter(client, clock), InMemoryBackend(clock=clock))
    await router.set("k", "redis-value", 60)

    client.up = False
    with pytest.raises(RedisConnectionError):
        await router.get("k")

    # next call is routed locally without touching Redis
    assert await router.get("k") is None


def test_build_backend_without_url_is_memory_only():
    backend = build_backend(redis_url=None)
    assert isinstance(backend, InMemoryBackend)
    assert local_backend_of(backend) is backend


def test_build_backend_with_url_wraps_redis_with_fallback():
    backend = build_backend(redis_url="redis://localhost:6379/0")
    assert isinstance(backend, FallbackBackend)
    assert backend.primary.is_ready is False
    assert local_backend_of(backend) is backend.fallback


class _ReconnectsAfterListing(FallbackBackend):
    """Redis comes back right after keys() has been served from the local store."""

    def __init__(self, client, clock, *args, **kw):
        super().__init__(*args, **kw)
        self._client = client
        self._clock = clock

    async def keys(self, pattern):
        found = await super().keys(pattern)
        self._client.up = True
        self._clock.advance(5)
        return found


@pytest.mark.asyncio
async def test_pattern_invalidation_survives_reconnect_between_list_and_delete(clock):
    client = _ScriptedRedis(up=False)
    router = _ReconnectsAfterListing(
        client,
        clock,
        _adapter(client, clock, reconnect_interval_seconds=5),
        InMemoryBackend(clock=clock),
    )
    cache = CacheService(router)
    await cache.set("users:list:page=1:limit=10:search=", {"n": 1}, 60)

    assert await cache.delete_pattern("users:list:*") == 1
    assert router.primary.is_ready is True
    assert await router.fallback.keys("*") == []


@pytest.mark.asyncio
async def test_delete_on_redis_also_clears_local_copies(clock):
    client = _ScriptedRedis()
    router = FallbackBackend(_adapter(client, clock), InMemoryBackend(clock=clock))
    await router.fallback.set("k", "local", 60)
    client.store["k"] = "shared"

    assert await router.delete("k") == 2
    assert client.store == {}
    assert await router.fallback.get("k") is None
