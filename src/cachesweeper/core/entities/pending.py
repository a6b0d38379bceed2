"""Request-scoped batch entries and flush results."""

from dataclasses import dataclass, field
from typing import Any

from cachesweeper.core.entities.rule import Mode


@dataclass(frozen=True)
class PendingBatchEntry:
    """Keys buffered for deletion at the end of the current request.

    Attributes:
        keys: Cache keys to delete.
        mode: How the keys are deleted at flush time.
        job_options: Options passed to the job queue in async mode.
        owner_group: Declaring group, kept for log context.
    """

    keys: tuple[str, ...]
    mode: Mode
    job_options: dict[str, Any] = field(default_factory=dict)
    owner_group: str | None = None


@dataclass
class FlushReport:
    """Outcome of draining one pending buffer."""

    total_batches: int = 0
    async_jobs_scheduled: int = 0
    deleted: int = 0
    failed: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.total_batches == 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "total_batches": self.total_batches,
            "async_jobs_scheduled": self.async_jobs_scheduled,
            "deleted": self.deleted,
            "failed": self.failed,
            "errors": list(self.errors),
        }
