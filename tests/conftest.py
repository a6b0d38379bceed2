"""Pytest configuration for cachesweeper tests."""

import logging
from collections.abc import Sequence
from typing import Any

import pytest

from cachesweeper import GlobalSettings, InMemoryCacheBackend, RuleRegistry, SweeperService
from cachesweeper.log import LOGGER_NAME


class RecordingBackend:
    """Cache backend that records bulk calls and can fail chosen ones."""

    def __init__(self, fail_calls: Sequence[int] = ()) -> None:
        self.calls: list[list[str]] = []
        self.single_calls: list[str] = []
        self.fail_calls = set(fail_calls)

    def delete(self, key: str) -> bool:
        self.single_calls.append(key)
        return True

    def delete_multi(self, keys: Sequence[str]) -> int:
        self.calls.append(list(keys))
        if len(self.calls) in self.fail_calls:
            raise ConnectionError(f"call {len(self.calls)} failed")
        return len(keys)

    @property
    def deleted_keys(self) -> list[str]:
        return [
            key
            for index, call in enumerate(self.calls, start=1)
            if index not in self.fail_calls
            for key in call
        ]


class RecordingJobQueue:
    """Job queue that records enqueued jobs without running them."""

    def __init__(self) -> None:
        self.jobs: list[dict[str, Any]] = []

    def enqueue(self, payload: dict[str, Any], queue: str, options: dict[str, Any]) -> str:
        self.jobs.append({"payload": payload, "queue": queue, "options": options})
        return f"job-{len(self.jobs)}"


@pytest.fixture(autouse=True)
def reset_module_state():
    """Reset the default registry and package log level after each test."""
    from cachesweeper.core.services.rule_registry import default_registry

    yield

    default_registry.clear()
    logging.getLogger(LOGGER_NAME).setLevel(logging.NOTSET)


@pytest.fixture
def make_backend():
    """Factory for recording backends."""
    return RecordingBackend


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def job_queue() -> RecordingJobQueue:
    return RecordingJobQueue()


@pytest.fixture
def settings() -> GlobalSettings:
    return GlobalSettings()


@pytest.fixture
def registry() -> RuleRegistry:
    return RuleRegistry()


@pytest.fixture
def sweeper(backend: RecordingBackend, settings: GlobalSettings, registry: RuleRegistry) -> SweeperService:
    return SweeperService(backend=backend, settings=settings, registry=registry)


@pytest.fixture
def memory_backend() -> InMemoryCacheBackend:
    return InMemoryCacheBackend(maxsize=100)
