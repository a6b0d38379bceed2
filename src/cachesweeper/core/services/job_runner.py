"""Background job entrypoint and scheduling."""

import logging
import threading
from collections.abc import Iterable
from typing import Any
from uuid import uuid4

from cachesweeper.core.entities.rule import Trigger
from cachesweeper.core.entities.settings import GlobalSettings
from cachesweeper.core.interfaces.job_queue import IJobQueue
from cachesweeper.core.services.batch_deleter import BatchDeleter
from cachesweeper.log import log_error, log_event, timed

logger = logging.getLogger(__name__)


def _trigger_value(trigger: Trigger | str) -> str:
    return Trigger(trigger).value


class JobRunner:
    """Schedules deletion jobs and executes them.

    :meth:`perform` is the job entrypoint a queue consumer calls with a
    payload's ``keys`` and ``trigger``. :meth:`perform_async` builds that
    payload and hands it to the job queue, or runs it in-process when no
    queue is configured.
    """

    def __init__(
        self,
        deleter: BatchDeleter,
        settings: GlobalSettings,
        job_queue: IJobQueue | None = None,
    ) -> None:
        self._deleter = deleter
        self._settings = settings
        self._job_queue = job_queue
        self._lock = threading.Lock()
        self._enqueued = 0
        self._performed = 0

    @property
    def job_queue(self) -> IJobQueue | None:
        return self._job_queue

    @job_queue.setter
    def job_queue(self, job_queue: IJobQueue | None) -> None:
        self._job_queue = job_queue

    @property
    def has_backend(self) -> bool:
        return self._job_queue is not None

    @property
    def stats(self) -> dict[str, int]:
        with self._lock:
            return {"enqueued": self._enqueued, "performed": self._performed}

    def perform(self, keys: Iterable[str] | str, trigger: Trigger | str = Trigger.INSTANT) -> int:
        """Delete ``keys`` as a job.

        Args:
            keys: Keys from the job payload.
            trigger: Trigger recorded in the payload, for log context.

        Returns:
            Number of keys deleted.

        Raises:
            Exception: Unexpected errors are logged and re-raised so the
                job system can record the failure. Chunk failures are
                only counted.
        """
        job_id = uuid4().hex[:16]
        key_list = [keys] if isinstance(keys, str) else list(keys)
        trigger_value = _trigger_value(trigger)
        log_event(
            logger,
            "info",
            "Async job started",
            job_id=job_id,
            keys_count=len(key_list),
            keys=key_list,
            trigger=trigger_value,
        )

        with timed(logger, "async_cache_deletion", job_id=job_id, trigger=trigger_value) as perf:
            try:
                deleted_count = self._deleter.delete_keys(
                    key_list,
                    {"job_id": job_id, "mode": "async", "trigger": trigger_value},
                )
            except Exception as e:
                log_error(
                    logger,
                    e,
                    job_id=job_id,
                    keys=key_list,
                    error_type="async_job_error",
                    trigger=trigger_value,
                )
                raise
            failed_count = len(key_list) - deleted_count
            perf.update(keys_count=len(key_list), deleted_count=deleted_count, failed_count=failed_count)

        with self._lock:
            self._performed += 1
        log_event(
            logger,
            "info",
            "Async job completed",
            job_id=job_id,
            keys_count=len(key_list),
            deleted_count=deleted_count,
            failed_count=failed_count,
            trigger=trigger_value,
        )
        return deleted_count

    def perform_async(
        self,
        keys: Iterable[str] | str,
        trigger: Trigger | str = Trigger.INSTANT,
        job_options: dict[str, Any] | None = None,
    ) -> str | None:
        """Schedule a deletion job.

        The ``queue`` entry of ``job_options``, if present, selects the
        target queue; the remaining entries are passed as job options.
        Without a job queue the job runs synchronously, right away.

        Returns:
            The job id assigned by the queue, or None.
        """
        key_list = [keys] if isinstance(keys, str) else list(keys)
        options = dict(job_options or {})
        queue = str(options.pop("queue", None) or self._settings.queue)
        payload = {"keys": key_list, "trigger": _trigger_value(trigger)}

        if self._job_queue is None:
            log_event(
                logger,
                "info",
                "Async job scheduled",
                method="synchronous",
                keys_count=len(key_list),
                keys=key_list,
                trigger=payload["trigger"],
            )
            self.perform(payload["keys"], payload["trigger"])
            return None

        job_id = self._job_queue.enqueue(payload, queue, options)
        with self._lock:
            self._enqueued += 1
        log_event(
            logger,
            "info",
            "Async job scheduled",
            method="queue",
            job_id=job_id,
            queue=queue,
            job_options=options,
            keys_count=len(key_list),
            keys=key_list,
            trigger=payload["trigger"],
        )
        return job_id
