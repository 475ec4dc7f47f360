"""Delivery Sender para Slack.

Implementa `core.interfaces.sender.MessageSender`:
- `post_message`: un `chat.postMessage` por batch.
- `post_file`: subida externa de un fichero completo (snippet).

El modo no-op es un flag del constructor (no un toggle global): los envíos se
registran en `skipped`, se reportan con `skipped=True` y nunca se toca la API.
"""

from __future__ import annotations

import time

from adapters.slack_api import SlackApi
from core.domain.models import Batch, DeliveryResult, DeliveryTarget, FilePayload
from core.errors import TransportError
from core.interfaces.sender import MessageSender


def _plural_lines(count: int) -> str:
    return f"{count} message line" if count == 1 else f"{count} message lines"


class SlackSender(MessageSender):
    def __init__(self, api: SlackApi | None, target: DeliveryTarget, *, noop: bool = False) -> None:
        if api is None and not noop:
            raise ValueError("a SlackApi is required unless noop=True")
        self._api = api
        self._target = target
        self._noop = noop
        self.skipped: list[Batch | FilePayload] = []

    async def post_message(self, batch: Batch) -> DeliveryResult:
        description = _plural_lines(len(batch.lines))
        if self._noop:
            self.skipped.append(batch)
            return DeliveryResult(ok=True, skipped=True, description=description, lines=len(batch.lines))

        assert self._api is not None
        start = time.monotonic()
        try:
            await self._api.post_message(self._target.channel_id, batch.text)
        except TransportError as exc:
            return DeliveryResult(
                ok=False,
                description=description,
                lines=len(batch.lines),
                error=str(exc),
                elapsed_seconds=time.monotonic() - start,
            )
        return DeliveryResult(
            ok=True,
            description=description,
            lines=len(batch.lines),
            elapsed_seconds=time.monotonic() - start,
        )

    async def post_file(self, payload: FilePayload) -> DeliveryResult:
        description = f"file {payload.filename}"
        if self._noop:
            self.skipped.append(payload)
            return DeliveryResult(ok=True, skipped=True, description=description)

        assert self._api is not None
        start = time.monotonic()
        try:
            await self._api.upload_file(
                channel_id=self._target.channel_id,
                path=payload.path,
                filename=payload.filename,
                filetype=payload.filetype,
                comment=payload.comment,
            )
        except (TransportError, OSError) as exc:
            return DeliveryResult(
                ok=False,
                description=description,
                error=str(exc),
                elapsed_seconds=time.monotonic() - start,
            )
        return DeliveryResult(ok=True, description=description, elapsed_seconds=time.monotonic() - start)
