"""Starlette/FastAPI adapter for cachesweeper."""

from cachesweeper.adapters.fastapi.middleware import CacheSweeperMiddleware

__all__ = ["CacheSweeperMiddleware"]
