"""Job queue implementations."""

from cachesweeper.infrastructure.queues.thread_pool import ThreadPoolJobQueue

__all__ = ["ThreadPoolJobQueue"]
