"""Shutdown Coordinator.

State machine:

    RUNNING --(1st SIGINT/SIGTERM)--> FLUSHING --(final send done)--> TERMINATED
                                          |
                                          +--(2nd signal)--> abort()

FLUSHING stops the reader after its current line and closes the accumulator;
the pipeline then delivers the last batch and calls `finish()`. A second
signal does not wait for that read or that send.
"""

from __future__ import annotations

import asyncio
import os
import signal
import sys
from enum import Enum
from typing import Callable

from core.services.batcher import BatchAccumulator

SIGNALS: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM)


class ShutdownState(str, Enum):
    RUNNING = "running"
    FLUSHING = "flushing"
    TERMINATED = "terminated"


def hard_exit() -> None:
    sys.stdout.flush()
    sys.stderr.flush()
    os._exit(1)


class ShutdownCoordinator:
    def __init__(
        self,
        accumulator: BatchAccumulator,
        *,
        stop_reading: Callable[[], None] | None = None,
        abort: Callable[[], None] = hard_exit,
        notice: Callable[[str], None] | None = None,
    ) -> None:
        self._accumulator = accumulator
        self._stop_reading = stop_reading
        self._abort = abort
        self._notice = notice
        self._loop: asyncio.AbstractEventLoop | None = None
        self._installed: list[signal.Signals] = []
        self._fallback = False
        self.state = ShutdownState.RUNNING

    @property
    def interrupted(self) -> bool:
        return self.state is not ShutdownState.RUNNING

    def _say(self, message: str) -> None:
        if self._notice is not None:
            self._notice(message)

    def install(self) -> None:
        """Trap SIGINT/SIGTERM on the running loop."""

        self._loop = asyncio.get_running_loop()
        for sig in SIGNALS:
            try:
                self._loop.add_signal_handler(sig, self.handle_signal, sig)
            except NotImplementedError:
                # Windows event loops: plain handler, hop back onto the loop.
                self._fallback = True
                signal.signal(sig, self._threadsafe_handler)
            self._installed.append(sig)

    def _threadsafe_handler(self, signum: int, frame: object) -> None:
        assert self._loop is not None
        self._loop.call_soon_threadsafe(self.handle_signal, signal.Signals(signum))

    def uninstall(self) -> None:
        for sig in self._installed:
            if self._fallback:
                signal.signal(sig, signal.SIG_DFL)
            elif self._loop is not None:
                self._loop.remove_signal_handler(sig)
        self._installed.clear()

    def handle_signal(self, sig: signal.Signals | None = None) -> None:
        if self.state is ShutdownState.RUNNING:
            self.state = ShutdownState.FLUSHING
            pending = self._accumulator.pending_lines
            self._say(f"flushing {pending} remaining message lines to Slack...")
            if self._stop_reading is not None:
                self._stop_reading()
            self._accumulator.close()
        elif self.state is ShutdownState.FLUSHING:
            self._say("aborting")
            self._abort()

    def finish(self) -> None:
        self.state = ShutdownState.TERMINATED
