from collections import OrderedDict
from threading import RLock
from typing import Callable, List, Optional, Tuple
import time

from .cache_keys import compile_glob

Clock = Callable[[], float]


class LRUCacheImpl:
    """
    Thread-safe LRU table of string values with optional per-entry expiry.

    Expiry is lazy: an entry whose deadline is at or before now is dropped the
    next time anything touches it. purge_expired() does a full pass for callers
    that want a periodic sweep.
    """
    def __init__(self, capacity: int = 10_000, clock: Clock = time.monotonic):
        self.capacity = max(1, capacity)
        self._clock = clock
        # key -> (expires_at or None, value)
        self._data: "OrderedDict[str, Tuple[Optional[float], str]]" = OrderedDict()
        self._lock = RLock()

    def _live(self, key: str, now: float) -> Optional[Tuple[Optional[float], str]]:
        # Caller must hold the lock.
        item = self._data.get(key)
        if item is None:
            return None
        expires_at = item[0]
        if expires_at is not None and expires_at <= now:
            del self._data[key]
            return None
        return item

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            item = self._live(key, self._clock())
            if item is None:
                return None
            self._data.move_to_end(key)
            return item[1]

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        # Whole positive seconds only, the same values Redis accepts for SET EX.
        if ttl_seconds is not None and (
            isinstance(ttl_seconds, bool) or not isinstance(ttl_seconds, int) or ttl_seconds <= 0
        ):
            raise ValueError(f"invalid expire time {ttl_seconds!r} for key {key!r}")
        with self._lock:
            expires_at = self._clock() + ttl_seconds if ttl_seconds is not None else None
            if key in self._data:
                self._data.pop(key)
            elif len(self._data) >= self.capacity:
                self._data.popitem(last=False)  # Evict LRU
            self._data[key] = (expires_at, value)

    def delete(self, *keys: str) -> int:
        removed = 0
        with self._lock:
            now = self._clock()
            for key in keys:
                if self._live(key, now) is not None:
                    del self._data[key]
                    removed += 1
        return removed

    def keys(self, pattern: str) -> List[str]:
        matcher = compile_glob(pattern)
        with self._lock:
            now = self._clock()
            return [k for k in list(self._data) if self._live(k, now) is not None and matcher.match(k)]

    def exists(self, key: str) -> bool:
        with self._lock:
            return self._live(key, self._clock()) is not None

    def ttl(self, key: str) -> Optional[float]:
        """
        Seconds left before expiry, or None when the entry never expires.
        Raises KeyError when the key is absent or already expired.
        """
        with self._lock:
            now = self._clock()
            item = self._live(key, now)
            if item is None:
                raise KeyError(key)
            expires_at = item[0]
            return None if expires_at is None else expires_at - now

    def purge_expired(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [k for k, (exp, _) in self._data.items() if exp is not None and exp <= now]
            for k in expired:
                del self._data[k]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
