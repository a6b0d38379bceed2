"""Core domain layer for cachesweeper."""

from cachesweeper.core.entities import (
    CallbackPoint,
    ChangeEvent,
    ChangeNotification,
    GlobalSettings,
    GroupSettings,
    Mode,
    Rule,
    Trigger,
)
from cachesweeper.core.interfaces import ICacheBackend, IChangeSource, IJobQueue
from cachesweeper.core.services import SweeperService

__all__ = [
    # Entities
    "CallbackPoint",
    "ChangeEvent",
    "ChangeNotification",
    "GlobalSettings",
    "GroupSettings",
    "Mode",
    "Rule",
    "Trigger",
    # Interfaces
    "ICacheBackend",
    "IChangeSource",
    "IJobQueue",
    # Services
    "SweeperService",
]
