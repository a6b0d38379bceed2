"""Global, group and resolved invalidation settings."""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from cachesweeper.core.entities.rule import Mode, Trigger
from cachesweeper.log import LOG_LEVELS, set_log_level

DEFAULT_QUEUE = "default"
DEFAULT_BATCH_SIZE = 100
ENV_PREFIX = "CACHESWEEPER_"

_ENVIRONMENT_LOG_LEVELS = {
    "development": "debug",
    "production": "warn",
}


@dataclass
class GlobalSettings:
    """Process-wide invalidation defaults.

    One instance is owned by :class:`~cachesweeper.SweeperService` and
    shared by reference with every component that resolves settings.
    Mutate it through :meth:`configure` so values are validated.
    """

    log_level: str = "info"
    trigger: Trigger = Trigger.INSTANT
    mode: Mode = Mode.INLINE
    queue: str = DEFAULT_QUEUE
    job_options: dict[str, Any] = field(default_factory=dict)
    batch_size: int = DEFAULT_BATCH_SIZE

    def __post_init__(self) -> None:
        self.log_level = _validate_log_level(self.log_level)
        self.trigger = Trigger(self.trigger)
        self.mode = Mode(self.mode)
        self.batch_size = _validate_batch_size(self.batch_size)
        self.job_options = _validate_job_options(self.job_options)

    def configure(self, **changes: Any) -> "GlobalSettings":
        """Validate and apply configuration changes.

        Args:
            **changes: Any of ``log_level``, ``trigger``, ``mode``,
                ``queue``, ``job_options``, ``batch_size``.

        Returns:
            This settings object.

        Raises:
            ValueError: If a field is unknown or a value is invalid.
        """
        unknown = set(changes) - {
            "log_level",
            "trigger",
            "mode",
            "queue",
            "job_options",
            "batch_size",
        }
        if unknown:
            raise ValueError(f"Unknown setting(s): {', '.join(sorted(unknown))}")

        # Validate everything before mutating anything.
        validated: dict[str, Any] = {}
        if "log_level" in changes:
            validated["log_level"] = _validate_log_level(changes["log_level"])
        if "trigger" in changes:
            validated["trigger"] = _coerce(Trigger, changes["trigger"], "trigger")
        if "mode" in changes:
            validated["mode"] = _coerce(Mode, changes["mode"], "mode")
        if "queue" in changes:
            validated["queue"] = _validate_queue(changes["queue"])
        if "job_options" in changes:
            validated["job_options"] = _validate_job_options(changes["job_options"])
        if "batch_size" in changes:
            validated["batch_size"] = _validate_batch_size(changes["batch_size"])

        for name, value in validated.items():
            setattr(self, name, value)
        if "log_level" in validated:
            set_log_level(self.log_level)
        return self

    def reset(self) -> None:
        """Restore built-in defaults."""
        defaults = GlobalSettings()
        self.log_level = defaults.log_level
        self.trigger = defaults.trigger
        self.mode = defaults.mode
        self.queue = defaults.queue
        self.job_options = defaults.job_options
        self.batch_size = defaults.batch_size

    def snapshot(self) -> dict[str, Any]:
        """Return a plain dict of the current values."""
        return {
            "log_level": self.log_level,
            "trigger": self.trigger.value,
            "mode": self.mode.value,
            "queue": self.queue,
            "job_options": dict(self.job_options),
            "batch_size": self.batch_size,
        }

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "GlobalSettings":
        """Build settings from defaults overridden by environment variables.

        Reads ``CACHESWEEPER_LOG_LEVEL``, ``CACHESWEEPER_TRIGGER``,
        ``CACHESWEEPER_MODE``, ``CACHESWEEPER_QUEUE`` and
        ``CACHESWEEPER_BATCH_SIZE``. Without an explicit log level the
        level follows ``APP_ENV``: debug in development, warn in
        production, info otherwise.
        """
        env = os.environ if environ is None else environ

        log_level = env.get(f"{ENV_PREFIX}LOG_LEVEL")
        if not log_level:
            app_env = env.get("APP_ENV", "").lower()
            log_level = _ENVIRONMENT_LOG_LEVELS.get(app_env, "info")

        settings = cls(log_level=log_level.lower())
        overrides: dict[str, Any] = {}
        if env.get(f"{ENV_PREFIX}TRIGGER"):
            overrides["trigger"] = env[f"{ENV_PREFIX}TRIGGER"]
        if env.get(f"{ENV_PREFIX}MODE"):
            overrides["mode"] = env[f"{ENV_PREFIX}MODE"]
        if env.get(f"{ENV_PREFIX}QUEUE"):
            overrides["queue"] = env[f"{ENV_PREFIX}QUEUE"]
        if env.get(f"{ENV_PREFIX}BATCH_SIZE"):
            raw = env[f"{ENV_PREFIX}BATCH_SIZE"]
            try:
                overrides["batch_size"] = int(raw)
            except ValueError as e:
                raise ValueError(f"Invalid {ENV_PREFIX}BATCH_SIZE: {raw!r}") from e
        if overrides:
            settings.configure(**overrides)
        return settings


@dataclass(frozen=True)
class GroupSettings:
    """Settings declared by an owner group. None means inherit."""

    trigger: Trigger | None = None
    mode: Mode | None = None
    queue: str | None = None
    job_options: dict[str, Any] | None = None

    @classmethod
    def from_options(cls, options: Mapping[str, Any] | None) -> "GroupSettings":
        """Build group settings from a declaration mapping.

        Raises:
            ValueError: If a key is unknown or a value is invalid.
        """
        if not options:
            return cls()
        unknown = set(options) - {"trigger", "mode", "queue", "job_options"}
        if unknown:
            raise ValueError(f"Unknown group option(s): {', '.join(sorted(unknown))}")

        trigger = options.get("trigger")
        mode = options.get("mode")
        queue = options.get("queue")
        job_options = options.get("job_options")
        return cls(
            trigger=_coerce(Trigger, trigger, "trigger") if trigger is not None else None,
            mode=_coerce(Mode, mode, "mode") if mode is not None else None,
            queue=_validate_queue(queue) if queue is not None else None,
            job_options=_validate_job_options(job_options) if job_options is not None else None,
        )


@dataclass(frozen=True)
class Resolution:
    """Settings resolved for one invalidation event."""

    trigger: Trigger
    mode: Mode
    queue: str
    job_options: dict[str, Any]


def _validate_log_level(level: Any) -> str:
    normalized = str(level).lower()
    if normalized == "warning":
        normalized = "warn"
    if normalized not in LOG_LEVELS:
        raise ValueError(
            f"Invalid log level: {level}. Must be one of: {', '.join(LOG_LEVELS)}"
        )
    return normalized


def _validate_batch_size(batch_size: Any) -> int:
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size < 1:
        raise ValueError(f"batch_size must be a positive integer, got {batch_size!r}")
    return batch_size


def _validate_queue(queue: Any) -> str:
    if not isinstance(queue, str) or not queue.strip():
        raise ValueError(f"queue must be a non-empty string, got {queue!r}")
    return queue


def _validate_job_options(job_options: Any) -> dict[str, Any]:
    if not isinstance(job_options, Mapping):
        raise ValueError(f"job_options must be a mapping, got {type(job_options).__name__}")
    return {str(key): value for key, value in job_options.items()}


def _coerce(enum_cls: Any, value: Any, name: str) -> Any:
    try:
        return enum_cls(value)
    except ValueError as e:
        choices = ", ".join(member.value for member in enum_cls)
        raise ValueError(f"Invalid {name}: {value!r}. Must be one of: {choices}") from e
