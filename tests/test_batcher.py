"""Tests for the Batch Accumulator."""

from __future__ import annotations

import asyncio

import pytest

from core.services.batcher import BatchAccumulator


def _queue_of(*lines) -> asyncio.Queue:
    queue: asyncio.Queue = asyncio.Queue()
    for line in lines:
        queue.put_nowait(line)
    return queue


async def _collect(accumulator: BatchAccumulator):
    return [batch async for batch in accumulator.batches()]


class TestThresholds:
    def test_threshold_one_line_gives_one_batch_per_line(self):
        """Input ["x", "y"] with threshold 1 -> ["x"] then ["y"]."""

        async def scenario():
            return await _collect(BatchAccumulator(_queue_of("x", "y", None), max_lines=1))

        batches = asyncio.run(scenario())

        assert [b.lines for b in batches] == [("x",), ("y",)]
        assert [b.sequence for b in batches] == [1, 2]

    def test_remainder_is_emitted_as_final_batch(self):
        async def scenario():
            return await _collect(BatchAccumulator(_queue_of("a", "b", "c", "d", "e", None), max_lines=2))

        batches = asyncio.run(scenario())

        assert [b.lines for b in batches] == [("a", "b"), ("c", "d"), ("e",)]
        assert [b.final for b in batches] == [False, False, True]

    def test_empty_input_emits_nothing(self):
        async def scenario():
            return await _collect(BatchAccumulator(_queue_of(None), max_lines=10))

        assert asyncio.run(scenario()) == []

    def test_max_chars_splits_before_overflow(self):
        async def scenario():
            acc = BatchAccumulator(_queue_of("aaaa", "bbbb", "cccc", None), max_lines=100, max_chars=9)
            return await _collect(acc)

        batches = asyncio.run(scenario())

        # "aaaa\nbbbb" is exactly 9 chars
        assert [b.lines for b in batches] == [("aaaa", "bbbb"), ("cccc",)]

    def test_oversized_single_line_still_delivered(self):
        async def scenario():
            acc = BatchAccumulator(_queue_of("x" * 50, None), max_lines=100, max_chars=10)
            return await _collect(acc)

        batches = asyncio.run(scenario())

        assert [len(b.lines[0]) for b in batches] == [50]

    def test_rejects_zero_threshold(self):
        with pytest.raises(ValueError):
            BatchAccumulator(asyncio.Queue(), max_lines=0)


class TestFlushing:
    def test_interval_flushes_partial_batch(self):
        """A partial batch does not wait for more input once the interval elapsed."""

        async def scenario():
            queue = _queue_of("a", "b")
            acc = BatchAccumulator(queue, max_lines=100, flush_interval=0.05)
            gen = acc.batches()
            first = await asyncio.wait_for(gen.__anext__(), timeout=2)
            queue.put_nowait("c")
            queue.put_nowait(None)
            rest = [b async for b in gen]
            return first, rest

        first, rest = asyncio.run(scenario())

        assert first.lines == ("a", "b")
        assert not first.final
        assert [b.lines for b in rest] == [("c",)]
        assert rest[0].final

    def test_request_flush_emits_open_batch(self):
        async def scenario():
            queue = _queue_of("a")
            acc = BatchAccumulator(queue, max_lines=100)
            gen = acc.batches()
            task = asyncio.ensure_future(gen.__anext__())
            await asyncio.sleep(0.02)
            assert not task.done()
            acc.request_flush()
            flushed = await asyncio.wait_for(task, timeout=2)
            queue.put_nowait(None)
            rest = [b async for b in gen]
            return flushed, rest

        flushed, rest = asyncio.run(scenario())

        assert flushed.lines == ("a",)
        assert rest == []

    def test_request_flush_with_nothing_buffered_emits_nothing(self):
        async def scenario():
            queue: asyncio.Queue = asyncio.Queue()
            acc = BatchAccumulator(queue, max_lines=100)
            acc.request_flush()
            gen = acc.batches()
            task = asyncio.ensure_future(gen.__anext__())
            await asyncio.sleep(0.05)
            queue.put_nowait("late")
            queue.put_nowait(None)
            return await asyncio.wait_for(task, timeout=2)

        batch = asyncio.run(scenario())

        assert batch.lines == ("late",)
        assert batch.final


class TestClose:
    def test_close_drains_queued_lines_into_one_final_batch(self):
        """Shutdown takes the open batch plus every line up to the end marker."""

        async def scenario():
            queue = _queue_of("a")
            acc = BatchAccumulator(queue, max_lines=100)
            gen = acc.batches()
            task = asyncio.ensure_future(gen.__anext__())
            await asyncio.sleep(0.02)
            # arrived after the accumulator picked up "a", never read by it
            queue.put_nowait("b")
            acc.close()
            await asyncio.sleep(0.02)
            # the producer finishes its current line after the close
            queue.put_nowait("c")
            queue.put_nowait(None)
            final = await asyncio.wait_for(task, timeout=2)
            rest = [b async for b in gen]
            return final, rest

        final, rest = asyncio.run(scenario())

        assert final.lines == ("a", "b", "c")
        assert final.final
        assert rest == []

    def test_close_with_nothing_pending_ends_sequence(self):
        async def scenario():
            acc = BatchAccumulator(_queue_of(None), max_lines=100)
            acc.close()
            return await asyncio.wait_for(_collect(acc), timeout=2)

        assert asyncio.run(scenario()) == []

    def test_pending_lines_counts_buffer_and_queue(self):
        async def scenario():
            queue = _queue_of("a", "b", "c")
            acc = BatchAccumulator(queue, max_lines=100)
            gen = acc.batches()
            task = asyncio.ensure_future(gen.__anext__())
            await asyncio.sleep(0.02)
            pending = acc.pending_lines
            acc.close()
            queue.put_nowait(None)
            await asyncio.wait_for(task, timeout=2)
            return pending

        assert asyncio.run(scenario()) == 3
