"""Redis-backed job queue.

Producers push JSON payloads onto one Redis list per queue; a
:class:`RedisJobWorker` in a worker process pops them and calls the job
entrypoint.

Example:
    # web process
    sweeper.job_queue = RedisJobQueue(redis.Redis.from_url(REDIS_URL))

    # worker process
    worker = RedisJobWorker(redis.Redis.from_url(REDIS_URL), sweeper.perform)
    worker.run_forever()
"""

import json
import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import redis

from cachesweeper.core.entities.settings import DEFAULT_QUEUE
from cachesweeper.log import log_error, log_event

logger = logging.getLogger(__name__)

QUEUE_PREFIX = "cachesweeper:jobs:"


class RedisJobQueue:
    """Pushes jobs onto Redis lists, one list per queue."""

    def __init__(self, client: redis.Redis, prefix: str = QUEUE_PREFIX) -> None:
        self._redis = client
        self._prefix = prefix

    def enqueue(
        self,
        payload: dict[str, Any],
        queue: str,
        options: dict[str, Any],
    ) -> str:
        job_id = uuid4().hex[:16]
        message = {
            "id": job_id,
            "payload": payload,
            "options": options,
            "enqueued_at": datetime.now(timezone.utc).isoformat(),
        }
        self._redis.lpush(f"{self._prefix}{queue}", json.dumps(message, default=str))
        return job_id


class RedisJobWorker:
    """Consumes jobs pushed by :class:`RedisJobQueue`."""

    def __init__(
        self,
        client: redis.Redis,
        entrypoint: Callable[[list[str], str], Any],
        queues: Sequence[str] = (DEFAULT_QUEUE,),
        prefix: str = QUEUE_PREFIX,
    ) -> None:
        self._redis = client
        self._entrypoint = entrypoint
        self._queue_keys = [f"{prefix}{queue}" for queue in queues]
        self._running = False

    def run_once(self, timeout: int = 1) -> bool:
        """Pop and run at most one job.

        Returns:
            True if a job was processed (successfully or not).
        """
        item = self._redis.brpop(self._queue_keys, timeout=timeout)
        if item is None:
            return False
        _queue, raw = item
        try:
            message = json.loads(raw)
            payload = message["payload"]
            self._entrypoint(payload["keys"], payload["trigger"])
        except Exception as e:
            log_error(logger, e, raw_message=raw, error_type="async_job_error")
        return True

    def run_forever(self, timeout: int = 1) -> None:
        self._running = True
        log_event(logger, "info", "Job worker started", queues=self._queue_keys)
        while self._running:
            self.run_once(timeout=timeout)
        log_event(logger, "info", "Job worker stopped", queues=self._queue_keys)

    def stop(self) -> None:
        self._running = False
