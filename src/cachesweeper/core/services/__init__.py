"""Domain services for cachesweeper."""

from cachesweeper.core.services.batch_deleter import BatchDeleter, chunked
from cachesweeper.core.services.change_listener import AttachReport, ChangeListener
from cachesweeper.core.services.config_resolver import ConfigResolver
from cachesweeper.core.services.dispatcher import InvalidationDispatcher
from cachesweeper.core.services.flusher import PendingFlusher
from cachesweeper.core.services.job_runner import JobRunner
from cachesweeper.core.services.pending_buffer import (
    JOB_TARGET,
    REQUEST_TARGET,
    PendingBuffer,
    begin_scope,
    current_buffer,
    end_scope,
)
from cachesweeper.core.services.rule_registry import RuleRegistry, default_registry
from cachesweeper.core.services.sweeper_service import SweeperService

__all__ = [
    "AttachReport",
    "BatchDeleter",
    "ChangeListener",
    "ConfigResolver",
    "InvalidationDispatcher",
    "JOB_TARGET",
    "JobRunner",
    "PendingBuffer",
    "PendingFlusher",
    "REQUEST_TARGET",
    "RuleRegistry",
    "SweeperService",
    "begin_scope",
    "chunked",
    "current_buffer",
    "default_registry",
    "end_scope",
]
