# app/services/cache_service.py

import json
import logging
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel

from .cache import KeyValueBackend, TTL_MISSING

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class CacheService:
    """
    Cache-aside facade used by request handlers.

    Values are stored as compact JSON. This class is the containment boundary
    for cache failures: every backend or (de)serialization error is logged and
    turned into a miss / no-op, so a broken cache only costs latency.
    No retries; one failed attempt counts as a miss.
    """

    def __init__(self, backend: KeyValueBackend, default_ttl_seconds: int = 60):
        self.backend = backend
        self.default_ttl_seconds = default_ttl_seconds

    @property
    def backend_name(self) -> str:
        return self.backend.name

    async def get(self, key: str, model: Optional[Type[M]] = None) -> Any:
        """
        Return the cached value for `key`, or None on miss or failure.
        With `model`, the payload is validated into that Pydantic model and a
        payload that does not validate is treated as a miss.
        """
        try:
            raw = await self.backend.get(key)
            if raw is None:
                return None
            data = json.loads(raw)
            if model is not None:
                return model.model_validate(data)
            return data
        except Exception:
            logger.exception("Cache get error (key=%s)", key)
            return None

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        try:
            if isinstance(value, BaseModel):
                value = value.model_dump(mode="json")
            payload = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
            await self.backend.set(key, payload, ttl)
        except Exception:
            logger.exception("Cache set error (key=%s)", key)

    async def delete(self, key: str) -> None:
        try:
            await self.backend.delete(key)
        except Exception:
            logger.exception("Cache delete error (key=%s)", key)

    async def delete_pattern(self, pattern: str) -> int:
        """Remove every key matching `pattern` in one batch; returns how many were removed."""
        try:
            keys = await self.backend.keys(pattern)
            if not keys:
                return 0
            removed = await self.backend.delete(*keys)
            logger.info("Invalidated %d cache entries for pattern: %s", removed, pattern)
            return removed
        except Exception:
            logger.exception("Cache delete_pattern error (pattern=%s)", pattern)
            return 0

    async def exists(self, key: str) -> bool:
        try:
            return await self.backend.exists(key)
        except Exception:
            logger.exception("Cache exists error (key=%s)", key)
            return False

    async def ttl(self, key: str) -> int:
        try:
            return await self.backend.ttl(key)
        except Exception:
            logger.exception("Cache ttl error (key=%s)", key)
            return TTL_MISSING

    async def close(self) -> None:
        try:
            await self.backend.close()
        except Exception:
            logger.exception("Cache close error")
