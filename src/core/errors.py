"""Errores del Core.

Por qué una jerarquía pequeña:
- A la CLI le basta saber que algo es un `SlackcatError` para imprimir una
  única línea de diagnóstico y salir con 1.
- Los servicios lanzan el tipo concreto para que el llamador decida qué es fatal.
"""

from __future__ import annotations


class SlackcatError(Exception):
    """Base error for anything the CLI reports as a one-line diagnostic."""


class InputError(SlackcatError):
    """Reading the local input (file or stdin) failed."""


class TransportError(SlackcatError):
    """Delivering a batch or a file to Slack failed."""


class ConfigError(SlackcatError):
    """Target resolution failed (missing config, unknown team/channel, empty token)."""
