"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- Las líneas de estado van a stderr para que la salida de `--tee` en stdout
  quede limpia.
"""

from __future__ import annotations

from rich.console import Console
from rich.text import Text

from adapters.slack_api import is_conversation_id

console = Console(stderr=True, highlight=False)

PROGRAM_TAG = "slackcat"


def output(message: str, *, style: str | None = None) -> None:
    """Print one status line prefixed with the program tag.

    `Text` instead of markup: filenames and channel names may contain `[`.
    """

    line = Text.assemble((PROGRAM_TAG, "bold cyan"), " ", (message, style or ""))
    console.print(line, soft_wrap=True)


def print_error(message: str) -> None:
    # Single line, no partial output.
    output(" ".join(str(message).split()), style="red")


def format_target(channel: str) -> str:
    if channel.startswith(("#", "@")) or is_conversation_id(channel):
        return channel
    return f"#{channel}"
