"""Configuración del Core.

Por qué aquí:
- Centraliza variables de entorno (pydantic-settings) sin contaminar la CLI.
- Resuelve alias de canal (`team:channel`) y tokens por equipo en un solo sitio.
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.errors import ConfigError


def get_user_config_dir() -> Path:
    """Per-user configuration directory (cross-platform, no extra dependencies)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "slackcat"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "slackcat"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "slackcat"
    return Path.home() / ".config" / "slackcat"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def read_user_env_vars() -> dict[str, str]:
    env_path = get_user_env_file()
    if not env_path.exists():
        return {}
    return _parse_env_lines(env_path.read_text(encoding="utf-8"))


def write_user_env_vars(values: dict[str, str | None]) -> Path:
    """Escribe/actualiza variables en el .env global del usuario."""

    env_path = get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing = read_user_env_vars()
    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# slackcat user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    # Holds API tokens.
    env_path.chmod(0o600)
    return env_path


def save_team_token(*, team: str, token: str, make_default: bool = False) -> Path:
    """Add (or replace) a team token in the user config.

    The first team ever saved also becomes the default team.
    """

    existing = read_user_env_vars()
    try:
        teams = json.loads(existing.get("SLACKCAT_TEAMS") or "{}")
    except json.JSONDecodeError:
        teams = {}
    if not isinstance(teams, dict):
        teams = {}

    teams[team] = token
    values: dict[str, str | None] = {
        "SLACKCAT_TEAMS": json.dumps(teams, separators=(",", ":"), sort_keys=True),
    }
    if make_default or not existing.get("SLACKCAT_DEFAULT_TEAM"):
        values["SLACKCAT_DEFAULT_TEAM"] = team
    return write_user_env_vars(values)


class AppSettings(BaseSettings):
    """Configuración central de la aplicación.

    Por qué pydantic-settings:
    - Tipado + validación en el borde (env vars) sin ensuciar el Core con lógica.
    - Un único contrato de configuración para CLI/adapters.
    """

    model_config = SettingsConfigDict(
        env_prefix="SLACKCAT_",
        extra="ignore",
        case_sensitive=False,
        # Orden: proyecto primero (dev), luego config global de usuario.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    teams: dict[str, str] = Field(
        default_factory=dict,
        description="Team nickname -> Slack token (JSON object in the env file).",
    )
    default_team: str | None = Field(
        default=None,
        description="Team used when --channel carries no `team:` prefix.",
    )
    default_channel: str | None = Field(
        default=None,
        description="Channel used when --channel is omitted.",
    )

    api_base_url: str = Field(
        default="https://slack.com/api",
        min_length=8,
        description="Slack Web API base URL.",
    )
    http_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Per-request timeout (seconds).",
    )
    http_max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries on rate limit (HTTP 429, honouring Retry-After).",
    )
    user_agent: str = Field(
        default="slackcat/1.0 (+https://github.com/bcicen/slackcat)",
        min_length=1,
        description="User-Agent sent to Slack.",
    )
    oauth_url: str = Field(
        default="https://slackcat.chat/configure",
        min_length=8,
        description="Page that walks the user through the OAuth token grant.",
    )

    stream_batch_lines: int = Field(
        default=100,
        ge=1,
        le=10_000,
        description="Maximum lines per streamed message.",
    )
    stream_batch_chars: int = Field(
        default=35_000,
        ge=100,
        le=40_000,
        description="Maximum characters per streamed message (Slack truncates at 40k).",
    )
    stream_flush_interval_seconds: float = Field(
        default=3.0,
        gt=0,
        description="Seconds a partial batch may wait before it is flushed.",
    )


def parse_channel_opt(settings: AppSettings, channel: str | None) -> tuple[str, str]:
    """Split a `--channel` value into `(team, channel)`.

    Rules:
    - empty -> default team + default channel (error when there is none)
    - `team:channel` -> explicit team
    - anything else -> default team
    """

    if not channel:
        if not settings.default_channel:
            raise ConfigError("no channel provided!")
        return settings.default_team or "", settings.default_channel

    if ":" in channel:
        team, _, name = channel.partition(":")
        return team, name

    return settings.default_team or "", channel


def resolve_token(settings: AppSettings, team: str) -> str:
    if not settings.teams:
        raise ConfigError(f"missing config file at {get_user_env_file()} (use --configure to create)")

    if not team and len(settings.teams) == 1:
        team = next(iter(settings.teams))

    token = settings.teams.get(team, "").strip()
    if not token:
        raise ConfigError(f"no such team: {team}")
    return token


def load_settings() -> AppSettings:
    """Build settings reading the *current* user env file.

    `model_config.env_file` is fixed at import time; resolving it here keeps
    XDG_CONFIG_HOME/APPDATA changes made after import effective.
    """

    return AppSettings(_env_file=(".env", str(get_user_env_file())))
