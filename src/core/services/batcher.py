"""Batch Accumulator.

Turns the line queue into a lazy sequence of `Batch`. A batch is emitted
when one of these happens:

- `max_lines` lines are buffered
- the next line would push the batch past `max_chars`
- `flush_interval` seconds passed since the first line of the open batch
- `request_flush()` was called
- the queue was closed (end of input) -> `final=True`
- `close()` was called (shutdown) -> every line up to the end marker is
  collected, emitted as the final batch, and the sequence ends. The
  producer is expected to stop reading and send that marker.

Empty batches are never emitted.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator

from core.domain.models import Batch
from core.services.line_source import LineQueue


class BatchAccumulator:
    def __init__(
        self,
        lines: LineQueue,
        *,
        max_lines: int,
        max_chars: int | None = None,
        flush_interval: float | None = None,
    ) -> None:
        if max_lines < 1:
            raise ValueError("max_lines must be >= 1")
        self._lines = lines
        self._max_lines = max_lines
        self._max_chars = max_chars
        self._interval = flush_interval
        self._flush = asyncio.Event()
        self._closing = False
        self._sequence = 0
        self._buffer: list[str] = []
        self._buffer_chars = 0

    @property
    def pending_lines(self) -> int:
        """Lines in the open batch plus lines still waiting in the queue."""

        return len(self._buffer) + self._lines.qsize()

    def request_flush(self) -> None:
        self._flush.set()

    def close(self) -> None:
        self._closing = True
        self._flush.set()

    def _fits(self, line: str) -> bool:
        if self._max_chars is None or not self._buffer:
            return True
        # +1 for the joining newline.
        return self._buffer_chars + 1 + len(line) <= self._max_chars

    def _append(self, line: str) -> None:
        if self._buffer:
            self._buffer_chars += 1
        self._buffer.append(line)
        self._buffer_chars += len(line)

    def _emit(self, *, final: bool = False) -> Batch:
        self._sequence += 1
        batch = Batch(sequence=self._sequence, lines=tuple(self._buffer), final=final)
        self._buffer = []
        self._buffer_chars = 0
        return batch

    async def batches(self) -> AsyncIterator[Batch]:
        loop = asyncio.get_running_loop()
        getter: asyncio.Future | None = None
        flusher: asyncio.Future | None = None
        opened_at = 0.0

        try:
            while True:
                if getter is None:
                    getter = asyncio.ensure_future(self._lines.get())
                if flusher is None:
                    flusher = asyncio.ensure_future(self._flush.wait())

                timeout = None
                if self._buffer and self._interval is not None:
                    timeout = max(0.0, opened_at + self._interval - loop.time())

                done, _ = await asyncio.wait(
                    {getter, flusher},
                    timeout=timeout,
                    return_when=asyncio.FIRST_COMPLETED,
                )

                if getter in done:
                    line = getter.result()
                    getter = None
                    if line is None:
                        if self._buffer:
                            yield self._emit(final=True)
                        return

                    if not self._fits(line):
                        yield self._emit()
                    if not self._buffer:
                        opened_at = loop.time()
                    self._append(line)
                    if len(self._buffer) >= self._max_lines:
                        yield self._emit()

                if flusher in done:
                    flusher = None
                    self._flush.clear()
                    if self._closing:
                        # Shutdown: collect up to the end marker, no size cuts.
                        ended = False
                        if getter is not None:
                            line = await getter
                            getter = None
                            ended = line is None
                            if not ended:
                                self._append(line)
                        while not ended:
                            line = await self._lines.get()
                            ended = line is None
                            if not ended:
                                self._append(line)
                        if self._buffer:
                            yield self._emit(final=True)
                        return
                    if self._buffer:
                        yield self._emit()
                elif not done and self._buffer:
                    # flush_interval elapsed
                    yield self._emit()
        finally:
            for pending in (getter, flusher):
                if pending is not None and not pending.done():
                    pending.cancel()
