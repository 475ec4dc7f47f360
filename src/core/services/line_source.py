"""Line Source: input stream -> asyncio queue.

The reader runs on its own daemon thread. A blocking `stdin.readline()` can
not be cancelled, and a daemon thread never keeps the process alive once the
pipeline has finished (or was interrupted).

Queue protocol:
- each line is put as `str` (trailing `\\n` / `\\r\\n` stripped)
- a single `None` marks end of input (also after a read error or `stop()`)
"""

from __future__ import annotations

import asyncio
import threading
from typing import TextIO

from core.errors import InputError

LineQueue = asyncio.Queue  # asyncio.Queue[str | None]


class LineSource:
    """Publishes the lines of `stream` onto `lines` from a background thread."""

    def __init__(
        self,
        stream: TextIO,
        lines: LineQueue,
        *,
        tee: bool = False,
        echo: TextIO | None = None,
    ) -> None:
        self._stream = stream
        self._lines = lines
        self._tee = tee
        self._echo = echo
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._stop = threading.Event()
        self.error: InputError | None = None
        self.count = 0

    def start(self) -> None:
        """Start reading. Must be called from inside the running event loop."""

        self._loop = asyncio.get_running_loop()
        self._thread = threading.Thread(target=self._run, name="slackcat-reader", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop after the line being read (if any) has been published.

        The end marker follows that line, so a consumer waiting for `None`
        receives every line that was echoed.
        """

        self._stop.set()

    def _publish(self, item: str | None) -> bool:
        assert self._loop is not None
        try:
            self._loop.call_soon_threadsafe(self._lines.put_nowait, item)
        except RuntimeError:
            # Event loop already closed: nobody is listening anymore.
            return False
        return True

    def _run(self) -> None:
        try:
            while not self._stop.is_set():
                try:
                    raw = self._stream.readline()
                except (OSError, UnicodeDecodeError, ValueError) as exc:
                    self.error = InputError(f"unable to read input: {exc}")
                    return
                if not raw:
                    return

                line = raw.rstrip("\n").rstrip("\r")
                if self._tee and self._echo is not None:
                    self._echo.write(line + "\n")
                    self._echo.flush()

                if not self._publish(line):
                    return
                self.count += 1
        finally:
            self._publish(None)
