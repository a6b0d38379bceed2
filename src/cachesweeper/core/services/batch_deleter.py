"""Chunked bulk deletion with per-chunk failure isolation."""

import logging
import threading
from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Any

from cachesweeper.core.entities.settings import GlobalSettings
from cachesweeper.core.interfaces.cache_backend import ICacheBackend
from cachesweeper.log import log_error, log_event

logger = logging.getLogger(__name__)


def chunked(keys: Sequence[str], size: int) -> Iterator[list[str]]:
    """Yield consecutive chunks of at most ``size`` keys."""
    for start in range(0, len(keys), size):
        yield list(keys[start : start + size])


class BatchDeleter:
    """Deletes keys through the backend's bulk primitive, chunk by chunk.

    A failing chunk is logged and skipped, never retried; the remaining
    chunks still run. Knows nothing about triggers or modes.
    """

    def __init__(self, backend: ICacheBackend, settings: GlobalSettings) -> None:
        self._backend = backend
        self._settings = settings
        self._lock = threading.Lock()
        self._deleted = 0
        self._failed = 0

    @property
    def backend(self) -> ICacheBackend:
        return self._backend

    @property
    def stats(self) -> dict[str, int]:
        with self._lock:
            return {"deleted": self._deleted, "failed": self._failed}

    def delete_keys(
        self,
        keys: Iterable[str],
        context: Mapping[str, Any] | None = None,
    ) -> int:
        """Delete ``keys`` in chunks of ``batch_size``.

        Args:
            keys: Keys to delete. Repeats are harmless.
            context: Extra fields for log records (job id, trigger, ...).

        Returns:
            Number of keys in chunks whose bulk call succeeded.
        """
        key_list = [keys] if isinstance(keys, str) else list(keys)
        context = dict(context or {})
        if not key_list:
            return 0

        batch_size = self._settings.batch_size
        deleted_count = 0
        for index, chunk in enumerate(chunked(key_list, batch_size), start=1):
            try:
                self._backend.delete_multi(chunk)
            except Exception as e:
                log_error(
                    logger,
                    e,
                    **{**context, "keys": chunk, "chunk": index, "error_type": "cache_delete_error"},
                )
                continue
            deleted_count += len(chunk)
            log_event(
                logger,
                "debug",
                f"Cache deleted: {len(chunk)} keys",
                **{**context, "keys": chunk, "chunk": index, "status": "success"},
            )

        failed_count = len(key_list) - deleted_count
        with self._lock:
            self._deleted += deleted_count
            self._failed += failed_count

        log_event(
            logger,
            "info" if failed_count == 0 else "warn",
            "Batch deletion completed",
            **{
                **context,
                "deleted_count": deleted_count,
                "failed_count": failed_count,
                "total_keys": len(key_list),
                "batch_size": batch_size,
            },
        )
        return deleted_count
