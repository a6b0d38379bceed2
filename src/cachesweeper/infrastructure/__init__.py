"""Infrastructure layer implementations for cachesweeper."""

from cachesweeper.infrastructure.backends import InMemoryCacheBackend
from cachesweeper.infrastructure.queues import ThreadPoolJobQueue

__all__ = [
    "InMemoryCacheBackend",
    "ThreadPoolJobQueue",
]
