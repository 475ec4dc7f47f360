"""Single-shot mode: whole input -> one file upload.

stdin goes through the same Line Source as streaming; the queue is spooled
into a `slackcat-*` temp file which is uploaded and then removed. An empty
input produces an empty file.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
import time
from pathlib import Path
from typing import TextIO

from core.domain.models import DeliveryResult, FilePayload
from core.errors import InputError, TransportError
from core.interfaces.sender import MessageSender
from core.services.line_source import LineSource


def default_filename() -> str:
    """Current Unix timestamp, the name used when neither --filename nor a path is given."""

    return str(int(time.time()))


async def spool_to_tempfile(
    stream: TextIO,
    *,
    tee: bool = False,
    echo: TextIO | None = None,
    directory: str | None = None,
) -> Path:
    lines: asyncio.Queue = asyncio.Queue()
    source = LineSource(stream, lines, tee=tee, echo=echo)

    fd, name = tempfile.mkstemp(prefix="slackcat-", dir=directory)
    path = Path(name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as out:
            source.start()
            while True:
                line = await lines.get()
                if line is None:
                    break
                out.write(line + "\n")
    except BaseException:
        path.unlink(missing_ok=True)
        raise

    if source.error is not None:
        path.unlink(missing_ok=True)
        raise source.error
    return path


async def upload_file(sender: MessageSender, payload: FilePayload) -> DeliveryResult:
    """Upload one file; any failure is fatal in single-shot mode."""

    if not payload.path.is_file():
        raise InputError(f"no such file: {payload.path}")

    result = await sender.post_file(payload)
    if not result.ok:
        raise TransportError(f"error uploading file to Slack: {result.error}")
    return result


async def upload_stream(
    sender: MessageSender,
    stream: TextIO,
    *,
    filename: str | None = None,
    filetype: str | None = None,
    comment: str | None = None,
    tee: bool = False,
    echo: TextIO | None = None,
) -> DeliveryResult:
    path = await spool_to_tempfile(stream, tee=tee, echo=echo)
    try:
        payload = FilePayload(
            path=path,
            filename=filename or default_filename(),
            filetype=filetype,
            comment=comment,
        )
        return await upload_file(sender, payload)
    finally:
        path.unlink(missing_ok=True)
