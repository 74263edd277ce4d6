import time
from typing import Any, Callable, Optional, Tuple

from cachetools import TLRUCache

from ..core.config import DEFAULT_CACHE_TTL, MAX_CACHE_ENTRIES


def _expires_at(_key: str, entry: Tuple[int, Any], now: float) -> float:
    ttl, _ = entry
    return now + ttl


class ResponseCache:
    """In-memory TTL cache for rendered responses.

    Each entry carries its own TTL. Expired entries are purged on every write
    and read, and the cache never holds more than ``maxsize`` entries (least
    recently used go first). The cache lives inside one process; replicas
    each keep their own copy and may disagree until their entries expire.
    """

    def __init__(
        self,
        default_ttl: int = DEFAULT_CACHE_TTL,
        maxsize: int = MAX_CACHE_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self._entries: TLRUCache = TLRUCache(maxsize=maxsize, ttu=_expires_at, timer=clock)
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Any]:
        self._entries.expire()
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        self.hits += 1
        return entry[1]

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        self._entries[key] = (ttl, value)

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def flush_all(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        self._entries.expire()
        return len(self._entries)

    def stats(self) -> dict:
        return {"keys": len(self), "hits": self.hits, "misses": self.misses}
