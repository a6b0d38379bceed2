"""cachesweeper - Rule-driven cache invalidation for ORM-backed applications.

Declare, per model, which attribute changes invalidate which cache keys.
Invalidation runs instantly or deferred to the end of the request, and
inline or on a background job queue.

Example with SQLAlchemy and FastAPI:
    from fastapi import FastAPI
    from sqlalchemy.orm import sessionmaker

    from cachesweeper import SweeperService, Sweeper, watch
    from cachesweeper.adapters.fastapi import CacheSweeperMiddleware
    from cachesweeper.adapters.sqlalchemy import SQLAlchemyChangeSource
    from cachesweeper.infrastructure.backends.redis import RedisCacheBackend

    class ProductSweeper(Sweeper):
        model = Product
        options = {"trigger": "deferred"}
        rules = [
            watch(attributes=["price"], keys=lambda p: [f"product:{p.id}"]),
            watch("reviews", keys=lambda p: [f"product:{p.id}:reviews"]),
        ]

    sweeper = SweeperService(backend=RedisCacheBackend(REDIS_URL))
    sweeper.attach(SQLAlchemyChangeSource(sessionmaker(engine)))

    app = FastAPI()
    app.add_middleware(CacheSweeperMiddleware, sweeper=sweeper)

Outside a web request:
    with sweeper.request_scope():
        run_batch_import()
"""

from cachesweeper.core.entities import (
    CallbackPoint,
    ChangeEvent,
    ChangeNotification,
    FlushReport,
    GlobalSettings,
    GroupSettings,
    Mode,
    PendingBatchEntry,
    Resolution,
    Rule,
    Trigger,
)
from cachesweeper.core.interfaces import (
    AssociationBinding,
    ICacheBackend,
    IChangeSource,
    IJobQueue,
)
from cachesweeper.core.services import (
    BatchDeleter,
    ConfigResolver,
    PendingBuffer,
    RuleRegistry,
    SweeperService,
    current_buffer,
    default_registry,
)
from cachesweeper.dsl import Sweeper, watch
from cachesweeper.infrastructure import InMemoryCacheBackend, ThreadPoolJobQueue
from cachesweeper.log import configure_logging

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Core entities
    "CallbackPoint",
    "ChangeEvent",
    "ChangeNotification",
    "FlushReport",
    "GlobalSettings",
    "GroupSettings",
    "Mode",
    "PendingBatchEntry",
    "Resolution",
    "Rule",
    "Trigger",
    # Core interfaces
    "AssociationBinding",
    "ICacheBackend",
    "IChangeSource",
    "IJobQueue",
    # Core services
    "BatchDeleter",
    "ConfigResolver",
    "PendingBuffer",
    "RuleRegistry",
    "SweeperService",
    "current_buffer",
    "default_registry",
    # Declarative sweepers
    "Sweeper",
    "watch",
    # Infrastructure implementations
    "InMemoryCacheBackend",
    "ThreadPoolJobQueue",
    # Logging
    "configure_logging",
]
