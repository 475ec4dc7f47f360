"""Script de ejecución.

Por qué existe:
- Permite ejecutar la CLI con `python -m main` durante desarrollo.
- Es también el target del script `slackcat` declarado en pyproject.toml.
"""

from __future__ import annotations

import sys

# Windows terminals default to cp1252; piped logs are usually utf-8.
if sys.platform == "win32":
    sys.stdin.reconfigure(encoding="utf-8")
    sys.stdout.reconfigure(encoding="utf-8")
    sys.stderr.reconfigure(encoding="utf-8")

from cli.main import run


def main() -> None:
    run()


if __name__ == "__main__":
    main()
