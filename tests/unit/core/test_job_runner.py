"""Tests for JobRunner."""

import logging

import pytest

from cachesweeper.core.entities import GlobalSettings, Trigger
from cachesweeper.core.services import BatchDeleter
from cachesweeper.core.services.job_runner import JobRunner


@pytest.fixture
def runner(backend, settings) -> JobRunner:
    return JobRunner(BatchDeleter(backend, settings), settings)


class TestPerform:
    """Tests for the job entrypoint."""

    def test_deletes_keys(self, runner, backend):
        assert runner.perform(["product:1", "product:2"], "instant") == 2
        assert backend.calls == [["product:1", "product:2"]]
        assert runner.stats["performed"] == 1

    def test_accepts_request_trigger(self, runner, backend, caplog):
        with caplog.at_level(logging.INFO, logger="cachesweeper"):
            runner.perform(["a"], "request")

        started = [r for r in caplog.records if r.getMessage() == "Async job started"]
        assert started[0].sweeper_context["trigger"] == "deferred"

    def test_chunk_failures_are_counted_not_raised(self, make_backend):
        backend = make_backend(fail_calls=[1])
        settings = GlobalSettings(batch_size=1)
        runner = JobRunner(BatchDeleter(backend, settings), settings)

        assert runner.perform(["a", "b"]) == 1

    def test_unexpected_error_is_reraised(self, settings, caplog):
        class BrokenDeleter:
            def delete_keys(self, keys, context=None):
                raise RuntimeError("boom")

        runner = JobRunner(BrokenDeleter(), settings)

        with caplog.at_level(logging.ERROR, logger="cachesweeper"):
            with pytest.raises(RuntimeError, match="boom"):
                runner.perform(["a"])

        assert caplog.records[-1].sweeper_context["error_type"] == "async_job_error"


class TestPerformAsync:
    """Tests for job scheduling."""

    def test_without_queue_runs_synchronously(self, runner, backend):
        assert runner.has_backend is False

        assert runner.perform_async(["a", "b"], Trigger.INSTANT) is None

        assert backend.calls == [["a", "b"]]
        assert runner.stats == {"enqueued": 0, "performed": 1}

    def test_enqueues_canonical_payload(self, runner, backend, job_queue):
        runner.job_queue = job_queue

        job_id = runner.perform_async(["a", "b"], Trigger.DEFERRED, {"retry": 3})

        assert job_id == "job-1"
        assert job_queue.jobs == [
            {
                "payload": {"keys": ["a", "b"], "trigger": "deferred"},
                "queue": "default",
                "options": {"retry": 3},
            }
        ]
        assert backend.calls == []
        assert runner.stats["enqueued"] == 1

    def test_queue_option_selects_queue(self, runner, job_queue):
        runner.job_queue = job_queue

        runner.perform_async(["a"], job_options={"queue": "low", "retry": 1})

        assert job_queue.jobs[0]["queue"] == "low"
        assert job_queue.jobs[0]["options"] == {"retry": 1}

    def test_global_queue_is_default(self, backend, job_queue):
        settings = GlobalSettings(queue="cache")
        runner = JobRunner(BatchDeleter(backend, settings), settings, job_queue)

        runner.perform_async(["a"])

        assert job_queue.jobs[0]["queue"] == "cache"

    def test_job_options_are_not_mutated(self, runner, job_queue):
        runner.job_queue = job_queue
        options = {"queue": "low"}

        runner.perform_async(["a"], job_options=options)

        assert options == {"queue": "low"}
