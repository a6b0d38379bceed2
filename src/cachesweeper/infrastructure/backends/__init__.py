"""Cache backend implementations."""

from cachesweeper.infrastructure.backends.memory import InMemoryCacheBackend

__all__ = ["InMemoryCacheBackend"]
