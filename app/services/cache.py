from abc import ABC, abstractmethod
from typing import Optional, List

# ttl() sentinels, same values Redis returns for TTL
TTL_NO_EXPIRY = -1
TTL_MISSING = -2


class KeyValueBackend(ABC):
    """
    Minimal string key-value store with expiry, so the cache service can swap
    backends (in-memory, Redis) without changing callers.

    Misses are normal return values; transport errors propagate to the caller.
    """

    name: str = "abstract"

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        ...

    @abstractmethod
    async def delete(self, *keys: str) -> int:
        """Remove the given keys and return how many existed."""
        ...

    @abstractmethod
    async def keys(self, pattern: str) -> List[str]:
        """Live keys matching a glob where '*' matches any substring."""
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool:
        ...

    @abstractmethod
    async def ttl(self, key: str) -> int:
        """Seconds remaining, TTL_NO_EXPIRY, or TTL_MISSING."""
        ...

    async def close(self) -> None:
        """Release connections held by the backend (no-op by default)."""
        return None
