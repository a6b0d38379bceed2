"""Domain entities for cachesweeper."""

from cachesweeper.core.entities.change import ChangeNotification
from cachesweeper.core.entities.pending import FlushReport, PendingBatchEntry
from cachesweeper.core.entities.rule import (
    ALL_EVENTS,
    CallbackPoint,
    ChangeEvent,
    Mode,
    Rule,
    Trigger,
)
from cachesweeper.core.entities.settings import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_QUEUE,
    GlobalSettings,
    GroupSettings,
    Resolution,
)

__all__ = [
    "ALL_EVENTS",
    "CallbackPoint",
    "ChangeEvent",
    "ChangeNotification",
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_QUEUE",
    "FlushReport",
    "GlobalSettings",
    "GroupSettings",
    "Mode",
    "PendingBatchEntry",
    "Resolution",
    "Rule",
    "Trigger",
]
