"""Redis cache backend implementation."""

from collections.abc import Sequence

import redis


class RedisCacheBackend:
    """Redis cache backend for distributed deployments.

    ``delete_multi`` maps to a single ``DEL`` with many keys. Keys are
    used as given unless a ``key_prefix`` is configured.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        key_prefix: str | None = None,
        client: redis.Redis | None = None,
    ) -> None:
        """Initialize the Redis cache backend.

        Args:
            redis_url: Redis connection URL. Ignored when ``client`` is given.
            key_prefix: Optional prefix prepended to every key.
            client: An existing Redis client to reuse.
        """
        self._redis: redis.Redis = client if client is not None else redis.Redis.from_url(redis_url)
        self._key_prefix = key_prefix

    def delete(self, key: str) -> bool:
        """Delete a key.

        Returns:
            True if the key existed and was deleted, False otherwise.
        """
        result = self._redis.delete(self._prefixed_key(key))
        return int(result) > 0

    def delete_multi(self, keys: Sequence[str]) -> int:
        """Delete many keys with one ``DEL``.

        Returns:
            Number of keys that existed and were deleted.
        """
        if not keys:
            return 0
        return int(self._redis.delete(*(self._prefixed_key(key) for key in keys)))

    def ping(self) -> bool:
        return bool(self._redis.ping())

    def _prefixed_key(self, key: str) -> str:
        """Add prefix to key if configured and not already present."""
        if not self._key_prefix or key.startswith(f"{self._key_prefix}:"):
            return key
        return f"{self._key_prefix}:{key}"

    def close(self) -> None:
        """Close the Redis connection."""
        self._redis.close()

    def __enter__(self) -> "RedisCacheBackend":
        return self

    def __exit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        self.close()
