"""Streaming orchestration.

Line Source -> queue -> Batch Accumulator -> Delivery Sender, with the
Shutdown Coordinator able to force a final flush. `run()` returns when the
input ends or after the post-signal flush; there is no "block forever".

Like the rest of the Core, this module does not print. UI layers receive
progress through `StreamHooks`.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable, TextIO

from core.domain.models import Batch, DeliveryResult
from core.interfaces.sender import MessageSender
from core.services.batcher import BatchAccumulator
from core.services.line_source import LineSource
from core.services.shutdown import ShutdownCoordinator, hard_exit


@dataclass
class StreamOptions:
    """Batching knobs (mirrors the `stream_*` settings)."""

    max_lines: int = 100
    max_chars: int | None = 35_000
    flush_interval: float | None = 3.0
    tee: bool = False
    handle_signals: bool = True


@dataclass
class StreamHooks:
    """Optional callbacks for UI layers."""

    delivered: Callable[[Batch, DeliveryResult], None] | None = None
    failed: Callable[[Batch, DeliveryResult], None] | None = None
    notice: Callable[[str], None] | None = None


@dataclass
class StreamReport:
    batches_sent: int = 0
    batches_skipped: int = 0
    batches_failed: int = 0
    lines_read: int = 0
    lines_delivered: int = 0
    interrupted: bool = False
    failures: list[str] = field(default_factory=list)


class StreamPipeline:
    def __init__(
        self,
        sender: MessageSender,
        *,
        options: StreamOptions | None = None,
        hooks: StreamHooks | None = None,
        abort: Callable[[], None] = hard_exit,
    ) -> None:
        self._sender = sender
        self._options = options or StreamOptions()
        self._hooks = hooks or StreamHooks()
        self._abort = abort
        self.accumulator: BatchAccumulator | None = None
        self.coordinator: ShutdownCoordinator | None = None

    async def _deliver(self, batch: Batch, report: StreamReport) -> None:
        result = await self._sender.post_message(batch)
        if not result.ok:
            # Best effort: the batch is dropped, the stream goes on.
            report.batches_failed += 1
            report.failures.append(f"batch {batch.sequence}: {result.error}")
            if self._hooks.failed:
                self._hooks.failed(batch, result)
            return

        if result.skipped:
            report.batches_skipped += 1
        else:
            report.batches_sent += 1
        report.lines_delivered += len(batch.lines)
        if self._hooks.delivered:
            self._hooks.delivered(batch, result)

    async def run(self, stream: TextIO, *, echo: TextIO | None = None) -> StreamReport:
        """Stream `stream` until it ends or a signal flushes it.

        Raises `InputError` (after delivering everything that was read) when the
        input could not be read to the end.
        """

        opts = self._options
        lines: asyncio.Queue = asyncio.Queue()
        source = LineSource(stream, lines, tee=opts.tee, echo=echo)
        self.accumulator = BatchAccumulator(
            lines,
            max_lines=opts.max_lines,
            max_chars=opts.max_chars,
            flush_interval=opts.flush_interval,
        )
        self.coordinator = ShutdownCoordinator(
            self.accumulator,
            stop_reading=source.stop,
            abort=self._abort,
            notice=self._hooks.notice,
        )

        report = StreamReport()
        if opts.handle_signals:
            self.coordinator.install()
        try:
            source.start()
            async for batch in self.accumulator.batches():
                await self._deliver(batch, report)
        finally:
            if opts.handle_signals:
                self.coordinator.uninstall()
            report.interrupted = self.coordinator.interrupted
            self.coordinator.finish()

        report.lines_read = source.count
        if source.error is not None and not report.interrupted:
            raise source.error
        return report
