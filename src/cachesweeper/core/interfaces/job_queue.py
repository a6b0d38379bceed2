"""Job queue interface."""

from typing import Any, Protocol


class IJobQueue(Protocol):
    """Contract for the background execution backend.

    Jobs are fire-and-forget: ``enqueue`` returns once the job is
    accepted. The consumer later calls the job entrypoint
    ``SweeperService.perform(keys, trigger)`` with the payload fields.
    """

    def enqueue(
        self,
        payload: dict[str, Any],
        queue: str,
        options: dict[str, Any],
    ) -> str | None:
        """Accept a job for background execution.

        Args:
            payload: ``{"keys": [...], "trigger": "<trigger>"}``.
            queue: Name of the target queue.
            options: Backend-specific job options.

        Returns:
            The job id, if the backend assigns one.
        """
        ...
