"""Cache backend interface."""

from collections.abc import Sequence
from typing import Protocol


class ICacheBackend(Protocol):
    """Contract for the cache store whose entries are invalidated.

    cachesweeper never reads or writes values; it only needs the two
    deletion primitives. Deleting a missing key must succeed.
    """

    def delete(self, key: str) -> bool:
        """Delete a single key.

        Args:
            key: The cache key to delete.

        Returns:
            True if the key existed and was deleted, False otherwise.
        """
        ...

    def delete_multi(self, keys: Sequence[str]) -> int:
        """Delete many keys in one call.

        Args:
            keys: The cache keys to delete.

        Returns:
            Number of keys that existed and were deleted.

        Raises:
            Exception: Any backend failure. The caller treats the whole
                call as failed.
        """
        ...
