"""Tests for PendingBuffer and request scopes."""

import asyncio

import pytest

from cachesweeper.core.entities import Mode, PendingBatchEntry
from cachesweeper.core.services.pending_buffer import (
    JOB_TARGET,
    PendingBuffer,
    begin_scope,
    current_buffer,
    end_scope,
)


def entry(*keys: str) -> PendingBatchEntry:
    return PendingBatchEntry(keys=keys, mode=Mode.INLINE)


class TestPendingBuffer:
    """Tests for buffer operations."""

    def test_new_buffer_is_empty(self):
        buffer = PendingBuffer()

        assert buffer.is_empty
        assert len(buffer) == 0
        assert buffer.scope_id

    def test_append_returns_size(self):
        buffer = PendingBuffer("req-1")

        assert buffer.append(entry("a")) == 1
        assert buffer.append(entry("b")) == 2
        assert buffer.scope_id == "req-1"

    def test_drain_keeps_order_and_empties(self):
        buffer = PendingBuffer()
        first, second = entry("a"), entry("b")
        buffer.append(first)
        buffer.append(second)

        assert buffer.drain() == [first, second]
        assert buffer.is_empty

    def test_collect_key_deduplicates(self):
        buffer = PendingBuffer()
        buffer.collect_key("a", "ProductSweeper")
        buffer.collect_key("b", "ProductSweeper")
        buffer.collect_key("a", "ProductSweeper")

        assert not buffer.is_empty
        assert buffer.take_group_keys("ProductSweeper") == ["a", "b"]
        assert buffer.take_group_keys("ProductSweeper") == []

    def test_collect_key_targets_are_separate(self):
        buffer = PendingBuffer()
        buffer.collect_key("a", "ProductSweeper")
        buffer.collect_key("b", "ProductSweeper", JOB_TARGET)

        assert buffer.take_group_keys("ProductSweeper", JOB_TARGET) == ["b"]
        assert buffer.take_group_keys("ProductSweeper") == ["a"]

    def test_collect_key_without_group_uses_global(self):
        buffer = PendingBuffer()
        buffer.collect_key("a")

        assert buffer.collected_groups() == ["global"]
        assert buffer.take_group_keys() == ["a"]

    def test_collect_key_rejects_unknown_target(self):
        with pytest.raises(ValueError):
            PendingBuffer().collect_key("a", target="worker")

    def test_clear(self):
        buffer = PendingBuffer()
        buffer.append(entry("a"))
        buffer.collect_key("b")

        buffer.clear()

        assert buffer.is_empty
        assert buffer.collected_groups() == []


class TestScopes:
    """Tests for scope activation."""

    def test_no_scope_by_default(self):
        assert current_buffer() is None

    def test_begin_and_end(self):
        buffer = PendingBuffer()
        token = begin_scope(buffer)
        try:
            assert current_buffer() is buffer
        finally:
            end_scope(token)
        assert current_buffer() is None

    def test_begin_creates_buffer(self):
        token = begin_scope()
        try:
            assert isinstance(current_buffer(), PendingBuffer)
        finally:
            end_scope(token)

    def test_nested_scopes_restore_outer(self):
        outer, inner = PendingBuffer(), PendingBuffer()
        outer_token = begin_scope(outer)
        inner_token = begin_scope(inner)
        assert current_buffer() is inner
        end_scope(inner_token)
        assert current_buffer() is outer
        end_scope(outer_token)

    async def test_concurrent_tasks_are_isolated(self):
        async def handle(name: str) -> list[str]:
            token = begin_scope(PendingBuffer(name))
            try:
                current_buffer().append(entry(f"{name}:key"))
                await asyncio.sleep(0)
                return [key for e in current_buffer().entries for key in e.keys]
            finally:
                end_scope(token)

        first, second = await asyncio.gather(handle("one"), handle("two"))

        assert first == ["one:key"]
        assert second == ["two:key"]
