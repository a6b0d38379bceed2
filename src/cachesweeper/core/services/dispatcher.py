"""Routes resolved invalidations to delete, enqueue or buffer."""

import logging
from collections.abc import Iterable

from cachesweeper.core.entities.pending import PendingBatchEntry
from cachesweeper.core.entities.rule import Mode, Rule, Trigger
from cachesweeper.core.entities.settings import Resolution
from cachesweeper.core.services.batch_deleter import BatchDeleter
from cachesweeper.core.services.config_resolver import ConfigResolver
from cachesweeper.core.services.job_runner import JobRunner
from cachesweeper.core.services.pending_buffer import PendingBuffer, current_buffer
from cachesweeper.core.services.rule_registry import RuleRegistry
from cachesweeper.log import log_error, log_event, timed

logger = logging.getLogger(__name__)


class InvalidationDispatcher:
    """Executes an invalidation according to its resolved settings.

    - deferred: append to the current request's pending buffer.
    - instant + async: schedule a job through the job runner.
    - instant + inline: delete now through the batch deleter.

    Invalidation is best-effort: every error is logged and swallowed.
    """

    def __init__(
        self,
        resolver: ConfigResolver,
        registry: RuleRegistry,
        deleter: BatchDeleter,
        job_runner: JobRunner,
    ) -> None:
        self._resolver = resolver
        self._registry = registry
        self._deleter = deleter
        self._job_runner = job_runner

    def invalidate(
        self,
        keys: Iterable[str],
        rule: Rule | None = None,
        buffer: PendingBuffer | None = None,
    ) -> None:
        """Invalidate ``keys`` as configured for ``rule``.

        Args:
            keys: Cache keys to invalidate.
            rule: The matched rule. None resolves from global settings only.
            buffer: Buffer for deferred entries. Defaults to the buffer of
                the active request scope.
        """
        key_list = [keys] if isinstance(keys, str) else list(keys)
        owner_group = rule.owner_group if rule else None
        rule_label = rule.label if rule else None
        if not key_list:
            log_event(logger, "debug", "No keys to invalidate", rule=rule_label)
            return

        resolution: Resolution | None = None
        try:
            group = self._registry.settings_for(owner_group) if owner_group else None
            resolution = self._resolver.resolve(rule, group)
            log_event(
                logger,
                "debug",
                "Cache invalidation started",
                rule=rule_label,
                trigger=resolution.trigger.value,
                mode=resolution.mode.value,
                keys_count=len(key_list),
            )

            with timed(
                logger,
                "cache_invalidation",
                trigger=resolution.trigger.value,
                mode=resolution.mode.value,
                keys_count=len(key_list),
            ):
                if resolution.trigger is Trigger.DEFERRED:
                    self._defer(key_list, resolution, owner_group, rule_label, buffer)
                else:
                    self._dispatch_now(key_list, resolution, rule_label)
        except Exception as e:
            log_error(
                logger,
                e,
                rule=rule_label,
                keys=key_list,
                trigger=resolution.trigger.value if resolution else None,
                mode=resolution.mode.value if resolution else None,
                error_type="cache_invalidation_error",
            )

    def _defer(
        self,
        keys: list[str],
        resolution: Resolution,
        owner_group: str | None,
        rule_label: str | None,
        buffer: PendingBuffer | None,
    ) -> None:
        target = buffer if buffer is not None else current_buffer()
        if target is None:
            log_event(
                logger,
                "warn",
                "Deferred invalidation outside a request scope; invalidating instantly",
                owner_group=owner_group,
                rule=rule_label,
                keys=keys,
            )
            self._dispatch_now(keys, resolution, rule_label)
            return

        size = target.append(
            PendingBatchEntry(
                keys=tuple(keys),
                mode=resolution.mode,
                job_options=dict(resolution.job_options),
                owner_group=owner_group,
            )
        )
        log_event(
            logger,
            "info",
            f"Batched for request: {keys!r} (mode: {resolution.mode.value})",
            scope_id=target.scope_id,
            keys=keys,
            mode=resolution.mode.value,
            batch_size=size,
        )

    def _dispatch_now(self, keys: list[str], resolution: Resolution, rule_label: str | None) -> None:
        if resolution.mode is Mode.ASYNC:
            self._job_runner.perform_async(keys, Trigger.INSTANT, resolution.job_options)
            return
        self._deleter.delete_keys(
            keys,
            {"rule": rule_label, "mode": Mode.INLINE.value, "trigger": Trigger.INSTANT.value},
        )
