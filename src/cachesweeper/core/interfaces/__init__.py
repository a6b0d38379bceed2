"""Core interfaces (Protocol classes) for cachesweeper."""

from cachesweeper.core.interfaces.cache_backend import ICacheBackend
from cachesweeper.core.interfaces.change_source import (
    AssociationBinding,
    ChangeHandler,
    IChangeSource,
)
from cachesweeper.core.interfaces.job_queue import IJobQueue

__all__ = [
    "AssociationBinding",
    "ChangeHandler",
    "ICacheBackend",
    "IChangeSource",
    "IJobQueue",
]
