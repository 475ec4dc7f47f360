"""Contrato del Delivery Sender.

Por qué Protocol:
- Define un contrato estructural (duck typing) sin herencia rígida.
- El pipeline solo necesita estas dos corrutinas: los tests pueden usar un
  fake que registra envíos en lugar del adaptador de Slack.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from core.domain.models import Batch, DeliveryResult, FilePayload


@runtime_checkable
class MessageSender(Protocol):
    """Contrato mínimo para entregar contenido al destino.

    Reglas de diseño:
    - Ambos métodos son async porque hacen I/O de red.
    - Los fallos de transporte vuelven como `DeliveryResult(ok=False)`, nunca
      como excepción.
    """

    async def post_message(self, batch: Batch) -> DeliveryResult:
        """Send one batch as one chat message."""

        ...

    async def post_file(self, payload: FilePayload) -> DeliveryResult:
        """Upload a whole file as a snippet."""

        ...
