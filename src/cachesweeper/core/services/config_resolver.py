"""Three-level settings resolution: rule, then group, then global."""

import logging
from collections.abc import Callable
from typing import Any

from cachesweeper.core.entities.rule import Mode, Rule, Trigger
from cachesweeper.core.entities.settings import (
    DEFAULT_QUEUE,
    GlobalSettings,
    GroupSettings,
    Resolution,
)
from cachesweeper.log import log_event

logger = logging.getLogger(__name__)


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


class ConfigResolver:
    """Resolves the effective settings of an invalidation.

    Each of ``trigger``, ``mode`` and ``queue`` resolves independently
    to the first value set on the rule, the group, then the global
    settings. ``job_options`` is a shallow merge in the same order, so a
    rule can add one option without discarding the group's.
    """

    def __init__(
        self,
        settings: GlobalSettings,
        async_backend_available: Callable[[], bool] | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            settings: The shared global settings, read on every call.
            async_backend_available: Returns whether a job queue is
                configured. Used only by :meth:`validate_mode`.
        """
        self._settings = settings
        self._async_backend_available = async_backend_available or (lambda: False)

    def resolve(self, rule: Rule | None, group: GroupSettings | None = None) -> Resolution:
        """Resolve settings for a rule and its owner group.

        Args:
            rule: The matched rule, or None for ad-hoc invalidation.
            group: The owner group's settings, if any.

        Returns:
            The resolved settings.
        """
        group = group or GroupSettings()
        settings = self._settings

        trigger = _first(
            rule.trigger_override if rule else None,
            group.trigger,
            settings.trigger,
        )
        mode = _first(
            rule.mode_override if rule else None,
            group.mode,
            settings.mode,
        )
        queue = _first(
            rule.queue_override if rule else None,
            group.queue,
            settings.queue or None,
        )

        job_options: dict[str, Any] = dict(settings.job_options or {})
        if group.job_options:
            job_options.update(group.job_options)
        if rule and rule.job_options_override:
            job_options.update(rule.job_options_override)

        queue = str(queue) if queue is not None else DEFAULT_QUEUE
        if queue != DEFAULT_QUEUE:
            job_options["queue"] = queue

        return Resolution(
            trigger=trigger if trigger is not None else Trigger.INSTANT,
            mode=mode if mode is not None else Mode.INLINE,
            queue=queue,
            job_options=job_options,
        )

    def validate_mode(self, mode: Mode | str | None, context_label: str) -> bool:
        """Warn when async mode is requested without a job queue.

        Such jobs still run, but synchronously in the calling thread.

        Returns:
            False if a warning was emitted, True otherwise.
        """
        if mode is None or Mode(mode) is not Mode.ASYNC:
            return True
        if self._async_backend_available():
            return True
        log_event(
            logger,
            "warn",
            f"Async mode configured for {context_label} but no job queue is available; "
            "jobs will run synchronously",
            context=context_label,
            mode=Mode.ASYNC.value,
        )
        return False
