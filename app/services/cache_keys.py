# app/services/cache_keys.py

import re
from functools import lru_cache
from typing import Pattern

LIST_SEGMENT = "list"


@lru_cache(maxsize=256)
def compile_glob(pattern: str) -> Pattern[str]:
    """
    Compile a key glob into an anchored regex.

    Only '*' is special (zero or more characters); every other character,
    including regex metacharacters and '?', '[', ']', is matched literally.
    """
    body = ".*".join(re.escape(part) for part in pattern.split("*"))
    return re.compile(f"^{body}$", re.DOTALL)


def to_redis_glob(pattern: str) -> str:
    """
    Escape Redis glob metacharacters other than '*' so KEYS/SCAN MATCH agrees
    with compile_glob on the same pattern.
    """
    return re.sub(r"([\\?\[\]^])", r"\\\1", pattern)


def list_cache_key(resource: str, page: int, limit: int, search: str = "") -> str:
    """Key for one page of a paginated list read, e.g. users:list:page=1:limit=10:search=."""
    return f"{resource}:{LIST_SEGMENT}:page={page}:limit={limit}:search={search or ''}"


def list_cache_pattern(resource: str) -> str:
    """Pattern covering every cached page/search variant of a resource listing."""
    return f"{resource}:{LIST_SEGMENT}:*"
