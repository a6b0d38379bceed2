"""Sweeper service - main orchestrator for cache invalidation."""

import logging
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from cachesweeper.core.entities.pending import FlushReport
from cachesweeper.core.entities.rule import Rule, Trigger
from cachesweeper.core.entities.settings import GlobalSettings
from cachesweeper.core.interfaces.cache_backend import ICacheBackend
from cachesweeper.core.interfaces.change_source import IChangeSource
from cachesweeper.core.interfaces.job_queue import IJobQueue
from cachesweeper.core.services.batch_deleter import BatchDeleter
from cachesweeper.core.services.change_listener import AttachReport, ChangeListener
from cachesweeper.core.services.config_resolver import ConfigResolver
from cachesweeper.core.services.dispatcher import InvalidationDispatcher
from cachesweeper.core.services.flusher import PendingFlusher
from cachesweeper.core.services.job_runner import JobRunner
from cachesweeper.core.services.pending_buffer import (
    REQUEST_TARGET,
    PendingBuffer,
    begin_scope,
    current_buffer,
    end_scope,
)
from cachesweeper.core.services.rule_registry import RuleRegistry, default_registry
from cachesweeper.log import log_error, log_event, set_log_level

logger = logging.getLogger(__name__)


class SweeperService:
    """Domain service that wires the invalidation components together.

    This is the main entry point: hosts build one per process, attach it
    to their ORM, open a request scope per request and point their job
    consumer at :meth:`perform`.
    """

    def __init__(
        self,
        backend: ICacheBackend,
        job_queue: IJobQueue | None = None,
        settings: GlobalSettings | None = None,
        registry: RuleRegistry | None = None,
        change_source: IChangeSource | None = None,
    ) -> None:
        """Initialize the sweeper service.

        Args:
            backend: Cache backend whose keys are deleted.
            job_queue: Optional background job queue for async mode.
                Without one, async jobs run synchronously.
            settings: Global settings. Defaults to environment-derived
                settings.
            registry: Rule registry. Defaults to the registry used by
                declarative sweepers.
            change_source: Host ORM change source used by :meth:`attach`.
        """
        self._settings = settings if settings is not None else GlobalSettings.from_env()
        self._registry = registry if registry is not None else default_registry
        set_log_level(self._settings.log_level)

        self._deleter = BatchDeleter(backend, self._settings)
        self._job_runner = JobRunner(self._deleter, self._settings, job_queue)
        self._resolver = ConfigResolver(self._settings, lambda: self._job_runner.has_backend)
        self._dispatcher = InvalidationDispatcher(
            self._resolver, self._registry, self._deleter, self._job_runner
        )
        self._listener = ChangeListener(
            self._registry, self._dispatcher, self._resolver, change_source
        )
        self._flusher = PendingFlusher(self._deleter, self._job_runner)

    @property
    def settings(self) -> GlobalSettings:
        return self._settings

    @property
    def registry(self) -> RuleRegistry:
        return self._registry

    @property
    def resolver(self) -> ConfigResolver:
        return self._resolver

    @property
    def backend(self) -> ICacheBackend:
        return self._deleter.backend

    @property
    def job_queue(self) -> IJobQueue | None:
        return self._job_runner.job_queue

    @job_queue.setter
    def job_queue(self, job_queue: IJobQueue | None) -> None:
        self._job_runner.job_queue = job_queue

    @property
    def stats(self) -> dict[str, int]:
        """Get invalidation statistics.

        Returns:
            Dictionary with deleted and failed key counts, enqueued and
            performed jobs, and completed flushes.
        """
        return {
            **self._deleter.stats,
            **self._job_runner.stats,
            **self._flusher.stats,
        }

    def configure(self, **changes: Any) -> GlobalSettings:
        """Validate and apply global settings changes.

        Raises:
            ValueError: If a value is invalid.
        """
        self._settings.configure(**changes)
        if "mode" in changes:
            self._resolver.validate_mode(self._settings.mode, "global settings")
        return self._settings

    def attach(self, change_source: IChangeSource | None = None) -> AttachReport:
        """Hook every registered rule into the change source.

        Call once at startup, and again after code reloads.
        """
        return self._listener.attach(change_source)

    def invalidate(
        self,
        keys: Iterable[str],
        rule: Rule | None = None,
        buffer: PendingBuffer | None = None,
    ) -> None:
        """Invalidate keys as configured for ``rule`` (or globally)."""
        self._dispatcher.invalidate(keys, rule, buffer)

    def delete_keys(self, keys: Iterable[str], context: Mapping[str, Any] | None = None) -> int:
        """Delete keys right now, in chunks. Returns the deleted count."""
        return self._deleter.delete_keys(keys, context)

    def perform(self, keys: Iterable[str], trigger: Trigger | str = Trigger.INSTANT) -> int:
        """Job entrypoint called by job queue consumers."""
        return self._job_runner.perform(keys, trigger)

    def perform_async(
        self,
        keys: Iterable[str],
        trigger: Trigger | str = Trigger.INSTANT,
        job_options: dict[str, Any] | None = None,
    ) -> str | None:
        """Schedule a deletion job. Runs it in-process without a job queue."""
        return self._job_runner.perform_async(keys, trigger, job_options)

    def collect_key(self, key: str, group: str | None = None, target: str = REQUEST_TARGET) -> None:
        """Collect a key in the current scope's per-group key set.

        Outside a request scope the key is invalidated instantly.
        """
        buffer = current_buffer()
        if buffer is None:
            log_event(
                logger,
                "warn",
                "Key collected outside a request scope; invalidating instantly",
                key=key,
                owner_group=group,
            )
            self.invalidate([key])
            return
        buffer.collect_key(key, group, target)

    def flush(self, buffer: PendingBuffer | None = None) -> FlushReport:
        """Drain a pending buffer, by default the current scope's."""
        target = buffer if buffer is not None else current_buffer()
        if target is None:
            log_event(logger, "debug", "No request scope to flush")
            return FlushReport()
        return self._flusher.flush(target)

    def flush_pending_keys(self, group: str | None = None) -> FlushReport:
        """Flush one group's collected keys in the current scope."""
        buffer = current_buffer()
        if buffer is None:
            return FlushReport()
        return self._flusher.flush_group(buffer, group)

    @contextmanager
    def request_scope(self, scope_id: str | None = None) -> Iterator[PendingBuffer]:
        """Open a request scope and flush it on exit, even on error.

        Example:
            with sweeper.request_scope():
                handle_request()
        """
        buffer = PendingBuffer(scope_id)
        token = begin_scope(buffer)
        try:
            yield buffer
        finally:
            try:
                self._flusher.flush(buffer)
            except Exception as e:
                log_error(logger, e, scope_id=buffer.scope_id, error_type="middleware_error")
            finally:
                end_scope(token)
