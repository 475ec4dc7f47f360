"""Modelos del dominio (Pydantic v2).

Por qué Pydantic en el dominio:
- Nos da validación estricta y documentación autocontenida (Field) sin acoplar
  el Core a librerías de I/O.
- `frozen=True` hace que un Batch sea inmutable al salir del acumulador.

Nota:
- Estos modelos describen *qué* se entrega, no *cómo* se transporta.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, SecretStr
from pydantic.config import ConfigDict


class Batch(BaseModel):
    """Ordered group of input lines delivered together as one message."""

    model_config = ConfigDict(frozen=True)

    sequence: int = Field(
        ...,
        ge=1,
        description="1-based position of the batch in the stream.",
    )
    lines: tuple[str, ...] = Field(
        ...,
        min_length=1,
        description="Input lines, newline stripped, in arrival order.",
    )
    final: bool = Field(
        default=False,
        description="True for the batch emitted when the input ended or shutdown closed the stream.",
    )

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


class DeliveryTarget(BaseModel):
    """Resolved destination for every send of this process."""

    model_config = ConfigDict(frozen=True)

    team: str = Field(
        default="",
        description="Team nickname from the config (informational).",
    )
    channel: str = Field(
        ...,
        min_length=1,
        description="Channel as the user wrote it (`#general`, `@alice`, `C0123`).",
    )
    channel_id: str = Field(
        ...,
        min_length=1,
        description="Slack conversation ID the API calls target.",
    )
    token: SecretStr = Field(
        ...,
        description="Slack token; never rendered in repr/logs.",
    )


class FilePayload(BaseModel):
    """A whole file for a single-shot snippet upload."""

    path: Path
    filename: str = Field(..., min_length=1)
    filetype: str | None = Field(
        default=None,
        description="Snippet type for syntax highlighting (e.g. `python`, `diff`).",
    )
    comment: str | None = Field(
        default=None,
        description="Initial comment posted alongside the file.",
    )


class DeliveryResult(BaseModel):
    """Outcome of one send. Transport failures are data here, not exceptions."""

    ok: bool
    description: str = Field(
        ...,
        description="Human readable summary (`3 message lines`, `file build.log`).",
    )
    lines: int = Field(default=0, ge=0)
    skipped: bool = Field(
        default=False,
        description="No-op mode: the send was recorded but not performed.",
    )
    error: str | None = None
    elapsed_seconds: float = Field(default=0.0, ge=0.0)
