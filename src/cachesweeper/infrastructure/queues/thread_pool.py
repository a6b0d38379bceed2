"""Worker-pool job queue running jobs in background threads."""

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any
from uuid import uuid4

from cachesweeper.log import log_error

logger = logging.getLogger(__name__)

JobEntrypoint = Callable[[list[str], str], Any]


class ThreadPoolJobQueue:
    """Runs jobs on a :class:`~concurrent.futures.ThreadPoolExecutor`.

    The queue name only tags the job; all queues share one pool.

    Example:
        sweeper = SweeperService(backend=InMemoryCacheBackend())
        sweeper.job_queue = ThreadPoolJobQueue(sweeper.perform)
    """

    def __init__(self, entrypoint: JobEntrypoint, max_workers: int = 4) -> None:
        """Initialize the job queue.

        Args:
            entrypoint: Called as ``entrypoint(keys, trigger)`` per job.
            max_workers: Size of the worker pool.
        """
        self._entrypoint = entrypoint
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="cachesweeper"
        )
        self._futures: dict[str, Future[Any]] = {}
        self._lock = threading.Lock()

    def enqueue(
        self,
        payload: dict[str, Any],
        queue: str,
        options: dict[str, Any],
    ) -> str:
        job_id = uuid4().hex[:16]
        future = self._executor.submit(self._run, job_id, queue, payload)
        with self._lock:
            self._futures[job_id] = future
        # Runs inline when the job already finished; keep it outside the lock.
        future.add_done_callback(lambda _f: self._forget(job_id))
        return job_id

    def _forget(self, job_id: str) -> None:
        with self._lock:
            self._futures.pop(job_id, None)

    def _run(self, job_id: str, queue: str, payload: dict[str, Any]) -> Any:
        try:
            return self._entrypoint(payload["keys"], payload["trigger"])
        except Exception as e:
            log_error(logger, e, job_id=job_id, queue=queue, error_type="async_job_error")
            raise

    def join(self, timeout: float | None = None) -> None:
        """Wait for the jobs submitted so far to finish."""
        with self._lock:
            futures = list(self._futures.values())
        for future in futures:
            try:
                future.result(timeout=timeout)
            except Exception:
                # Already logged by the worker.
                continue

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "ThreadPoolJobQueue":
        return self

    def __exit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        self.shutdown()
