"""End-of-request drain of the pending buffer."""

import logging
import threading

from cachesweeper.core.entities.pending import FlushReport
from cachesweeper.core.entities.rule import Mode, Trigger
from cachesweeper.core.services.batch_deleter import BatchDeleter
from cachesweeper.core.services.job_runner import JobRunner
from cachesweeper.core.services.pending_buffer import (
    JOB_TARGET,
    REQUEST_TARGET,
    PendingBuffer,
)
from cachesweeper.log import log_error, log_event, timed

logger = logging.getLogger(__name__)


class PendingFlusher:
    """Drains a request's pending buffer.

    Entries are processed in append order and independently: a failing
    entry is recorded in the report and the next one still runs. The
    buffer is always left empty.
    """

    def __init__(self, deleter: BatchDeleter, job_runner: JobRunner) -> None:
        self._deleter = deleter
        self._job_runner = job_runner
        self._lock = threading.Lock()
        self._flushes = 0

    @property
    def stats(self) -> dict[str, int]:
        with self._lock:
            return {"flushed": self._flushes}

    def flush(self, buffer: PendingBuffer) -> FlushReport:
        """Process and clear every entry of ``buffer``.

        Per-group key sets collected in the buffer are flushed too.
        """
        report = FlushReport()
        try:
            if buffer.is_empty:
                log_event(logger, "debug", "No cache flush needed", scope_id=buffer.scope_id)
                return report

            entries = buffer.drain()
            log_event(
                logger,
                "info",
                "Request flush started",
                scope_id=buffer.scope_id,
                batch_count=len(entries),
                total_keys=sum(len(entry.keys) for entry in entries),
                async_batches=sum(1 for entry in entries if entry.mode is Mode.ASYNC),
                instant_batches=sum(1 for entry in entries if entry.mode is not Mode.ASYNC),
            )

            with timed(logger, "request_flush", scope_id=buffer.scope_id):
                for entry in entries:
                    report.total_batches += 1
                    try:
                        if entry.mode is Mode.ASYNC:
                            self._job_runner.perform_async(entry.keys, Trigger.DEFERRED, entry.job_options)
                            report.async_jobs_scheduled += 1
                            log_event(
                                logger,
                                "debug",
                                "Batch scheduled async",
                                scope_id=buffer.scope_id,
                                keys=list(entry.keys),
                                job_options=entry.job_options,
                            )
                        else:
                            deleted = self._deleter.delete_keys(
                                entry.keys,
                                {
                                    "scope_id": buffer.scope_id,
                                    "mode": Mode.INLINE.value,
                                    "trigger": Trigger.DEFERRED.value,
                                },
                            )
                            report.deleted += deleted
                            report.failed += len(entry.keys) - deleted
                    except Exception as e:
                        report.errors.append({"keys": list(entry.keys), "error": str(e)})
                        log_error(
                            logger,
                            e,
                            scope_id=buffer.scope_id,
                            keys=list(entry.keys),
                            job_options=entry.job_options,
                            error_type="batch_error",
                        )

                for group in buffer.collected_groups():
                    self._flush_group(buffer, group, report)

            with self._lock:
                self._flushes += 1
            log_event(
                logger,
                "info",
                "Request flush completed",
                scope_id=buffer.scope_id,
                **report.as_dict(),
            )
            return report
        finally:
            buffer.clear()

    def flush_group(self, buffer: PendingBuffer, group: str | None = None) -> FlushReport:
        """Flush only the key sets one group collected in ``buffer``."""
        report = FlushReport()
        self._flush_group(buffer, group, report)
        return report

    def _flush_group(self, buffer: PendingBuffer, group: str | None, report: FlushReport) -> None:
        group_name = group or "global"
        with timed(logger, "flush_pending_keys", owner_group=group_name) as perf:
            request_keys = buffer.take_group_keys(group, REQUEST_TARGET)
            if request_keys:
                report.total_batches += 1
                deleted = self._deleter.delete_keys(
                    request_keys,
                    {"scope_id": buffer.scope_id, "owner_group": group_name, "mode": Mode.INLINE.value},
                )
                report.deleted += deleted
                report.failed += len(request_keys) - deleted
                log_event(
                    logger,
                    "info",
                    "Flushed request-level keys",
                    owner_group=group_name,
                    deleted_count=deleted,
                    failed_count=len(request_keys) - deleted,
                    total_keys=len(request_keys),
                )

            job_keys = buffer.take_group_keys(group, JOB_TARGET)
            if job_keys:
                report.total_batches += 1
                try:
                    self._job_runner.perform_async(job_keys, Trigger.DEFERRED)
                    report.async_jobs_scheduled += 1
                except Exception as e:
                    report.errors.append({"keys": job_keys, "error": str(e)})
                    log_error(
                        logger,
                        e,
                        owner_group=group_name,
                        keys=job_keys,
                        error_type="async_job_schedule_error",
                    )
            perf.update(request_keys_flushed=len(request_keys), job_keys_scheduled=len(job_keys))
