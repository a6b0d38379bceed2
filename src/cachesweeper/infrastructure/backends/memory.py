"""In-memory cache backend implementation."""

import threading
from collections.abc import Sequence
from datetime import timedelta

from cachetools import TTLCache  # type: ignore[import-untyped]


class InMemoryCacheBackend:
    """In-memory cache backend using LRU with TTL support.

    Suitable for single-process deployments and tests. Uses cachetools
    for LRU eviction and TTL expiration. Besides the deletion primitives
    it offers ``get``/``set`` so a host can use it as its actual cache.
    """

    def __init__(
        self,
        maxsize: int = 1000,
        default_ttl: float = 300.0,
    ) -> None:
        """Initialize the in-memory cache backend.

        Args:
            maxsize: Maximum number of items in the cache.
            default_ttl: Default TTL in seconds for items.
        """
        self._maxsize = maxsize
        self._default_ttl = default_ttl
        self._cache: TTLCache[str, bytes] = TTLCache(
            maxsize=maxsize,
            ttl=default_ttl,
        )
        self._lock = threading.Lock()

    def get(self, key: str) -> bytes | None:
        """Retrieve cached value by key, or None if missing or expired."""
        with self._lock:
            return self._cache.get(key)

    def set(
        self,
        key: str,
        value: bytes,
        ttl: timedelta | None = None,
    ) -> None:
        """Store value.

        Note: cachetools TTLCache uses a global TTL, so ``ttl`` is
        accepted for interface compatibility only.
        """
        with self._lock:
            self._cache[key] = value

    def delete(self, key: str) -> bool:
        """Delete cached value.

        Returns:
            True if the key existed and was deleted, False otherwise.
        """
        with self._lock:
            try:
                del self._cache[key]
                return True
            except KeyError:
                return False

    def delete_multi(self, keys: Sequence[str]) -> int:
        """Delete many keys. Missing keys are ignored.

        Returns:
            Number of keys that existed and were deleted.
        """
        count = 0
        with self._lock:
            for key in keys:
                try:
                    del self._cache[key]
                    count += 1
                except KeyError:
                    pass
        return count

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._cache

    def clear(self) -> None:
        """Clear all cached values."""
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        """Return the number of items in the cache."""
        return len(self._cache)

    @property
    def maxsize(self) -> int:
        """Return the maximum size of the cache."""
        return self._maxsize
