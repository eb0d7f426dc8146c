"""In-process response cache for idempotent read handlers.

Entries carry their own TTL and are evicted lazily on lookup, by the
periodic sweep, by explicit invalidation, or by a full clear. Data is
lost when the process restarts.
"""

import json
import re
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Pattern, Union


@dataclass
class _CacheEntry:
    """Internal cache entry with TTL tracking."""

    data: Any
    created_at: float
    ttl_seconds: float

    def is_expired(self, now: float) -> bool:
        """An entry is stale once its age reaches the TTL."""
        return now - self.created_at >= self.ttl_seconds


@dataclass
class CacheStats:
    """Running cache counters."""

    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        if lookups == 0:
            return 0.0
        return self.hits / lookups

    def to_dict(self) -> dict:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "deletes": self.deletes,
            "hit_rate": self.hit_rate,
        }


def build_cache_key(
    method: str,
    path: str,
    user_id: str | None,
    query: Mapping[str, Any] | None = None,
) -> str:
    """Build a deterministic cache key for a read request.

    The key encodes the operation, the acting identity and every parameter
    that affects the result. Query parameters are sorted so that the same
    request always maps to the same key.

    Example:
        >>> build_cache_key("get", "/api/v1/posts", "42", {"b": 2, "a": 1})
        'GET:/api/v1/posts:user:42:{"a": 1, "b": 2}'
    """
    params = json.dumps(dict(query or {}), sort_keys=True, default=str)
    return f"{method.upper()}:{path}:user:{user_id or 'anonymous'}:{params}"


class ResponseCache:
    """TTL cache with substring/regex invalidation and hit statistics.

    All read-modify-write sequences run under a single lock so the cache
    can be shared between the event loop and thread-pool handlers.

    Example:
        >>> cache = ResponseCache()
        >>> cache.set("posts:5", {"id": 5}, ttl_seconds=60)
        >>> cache.get("posts:5")
        {'id': 5}
    """

    def __init__(
        self,
        default_ttl: float = 300,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.default_ttl = default_ttl
        self._clock = clock
        self._data: dict[str, _CacheEntry] = {}
        self._stats = CacheStats()
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        """Retrieve a fresh value, or None on miss or expiry."""
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                self._stats.misses += 1
                return None
            if entry.is_expired(self._clock()):
                del self._data[key]
                self._stats.misses += 1
                self._stats.deletes += 1
                return None
            self._stats.hits += 1
            return entry.data

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        """Store a value, replacing any previous entry for the key."""
        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._data[key] = _CacheEntry(
                data=value, created_at=self._clock(), ttl_seconds=ttl
            )
            self._stats.sets += 1

    def invalidate(self, pattern: Union[str, Pattern[str]]) -> int:
        """Delete every entry whose key matches the pattern.

        Args:
            pattern: A substring, or a compiled regular expression that is
                searched anywhere in the key.

        Returns:
            Number of entries removed.
        """
        if isinstance(pattern, re.Pattern):
            matches = pattern.search
        else:
            matches = lambda key: pattern in key  # noqa: E731

        with self._lock:
            doomed = [key for key in self._data if matches(key)]
            for key in doomed:
                del self._data[key]
            self._stats.deletes += len(doomed)
            return len(doomed)

    def clear(self) -> int:
        """Remove all entries. Returns the number removed."""
        with self._lock:
            count = len(self._data)
            self._data.clear()
            self._stats.deletes += count
            return count

    def sweep_expired(self) -> int:
        """Remove all expired entries from the cache.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            now = self._clock()
            expired_keys = [
                key for key, entry in self._data.items() if entry.is_expired(now)
            ]
            for key in expired_keys:
                del self._data[key]
            self._stats.deletes += len(expired_keys)
            return len(expired_keys)

    def size(self) -> int:
        """Number of stored entries, fresh or not yet swept."""
        with self._lock:
            return len(self._data)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)

    def get_stats(self) -> dict:
        with self._lock:
            stats = self._stats.to_dict()
            stats["size"] = len(self._data)
            return stats

    def reset_stats(self) -> None:
        with self._lock:
            self._stats = CacheStats()
