"""slackcat CLI (Typer).

Thin glue: resolves config into a `DeliveryTarget`, builds the Slack sender
and hands off to the Core services (stream pipeline or snippet upload).
Every `SlackcatError` becomes one red diagnostic line and exit code 1.
"""

from __future__ import annotations

import asyncio
import sys
from importlib.metadata import PackageNotFoundError, version as package_version
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import typer
from pydantic import ValidationError

from adapters.http_client import build_async_client
from adapters.slack_api import SlackApi
from adapters.slack_sender import SlackSender
from cli.ui_components import format_target, output, print_error
from core.config import AppSettings, load_settings, parse_channel_opt, resolve_token, save_team_token
from core.domain.models import Batch, DeliveryResult, DeliveryTarget, FilePayload
from core.errors import ConfigError, InputError, SlackcatError, TransportError
from core.services.snippet import upload_file, upload_stream
from core.services.stream_pipeline import StreamHooks, StreamOptions, StreamPipeline, StreamReport

BUILD = ""

T = TypeVar("T")

app = typer.Typer(add_completion=False, help="redirect a file to slack")


def _version() -> str:
    try:
        return package_version("slackcat")
    except PackageNotFoundError:
        return "dev-build"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"slackcat version {_version()}, build {BUILD}")
        raise typer.Exit()


def exit_err(err: Exception) -> None:
    print_error(str(err))
    raise typer.Exit(code=1)


def configure_oauth(settings: AppSettings) -> Path:
    """Interactive token setup (stores the token in the user config .env)."""

    output(f"opening {settings.oauth_url} to authorize slackcat")
    try:
        typer.launch(settings.oauth_url)
    except OSError:
        output("unable to open a browser, visit the URL above manually")

    team = typer.prompt("nickname for team").strip()
    token = typer.prompt("token", hide_input=True).strip()
    if not team or not token:
        raise ConfigError("team nickname and token are required")

    env_path = save_team_token(team=team, token=token)
    output(f"added team {team} to {env_path}")
    return env_path


async def _with_sender(
    settings: AppSettings,
    *,
    team: str,
    channel: str,
    token: str,
    noop: bool,
    action: Callable[[SlackSender], Awaitable[T]],
) -> T:
    async with build_async_client(settings, token=token) as client:
        api = SlackApi(client, settings)
        # No-op mode never talks to Slack, not even for the channel lookup.
        if noop:
            channel_id = channel
        else:
            try:
                identity = await api.auth_test()
            except TransportError as exc:
                raise ConfigError(f"unable to authenticate with Slack: {exc}") from exc
            output(f"connected to {identity.get('team') or team} as {identity.get('user') or 'unknown'}")
            channel_id = await api.lookup_conversation_id(channel)
        target = DeliveryTarget(team=team, channel=channel, channel_id=channel_id, token=token)
        sender = SlackSender(None if noop else api, target, noop=noop)
        return await action(sender)


def _stream_hooks(channel: str) -> StreamHooks:
    where = format_target(channel)

    def delivered(batch: Batch, result: DeliveryResult) -> None:
        if result.skipped:
            output(f"skipped posting of {result.description} to {where}")
        else:
            output(f"posted {result.description} to {where}")

    def failed(batch: Batch, result: DeliveryResult) -> None:
        print_error(f"failed to post {result.description} to {where}: {result.error}")

    return StreamHooks(delivered=delivered, failed=failed, notice=output)


def _report_upload(result: DeliveryResult, channel: str) -> None:
    where = format_target(channel)
    if result.skipped:
        output(f"skipping upload of {result.description} to {where}")
    else:
        output(f"{result.description} uploaded to {where} ({result.elapsed_seconds:.3f}s)")


@app.command()
def main(
    file_path: Optional[Path] = typer.Argument(
        None,
        help="File to upload. Reads stdin when omitted.",
        show_default=False,
    ),
    channel: Optional[str] = typer.Option(None, "--channel", "-c", help="Slack channel or group to post to"),
    comment: Optional[str] = typer.Option(None, "--comment", help="Initial comment for snippet"),
    configure: bool = typer.Option(False, "--configure", help="Configure Slackcat via oauth"),
    filename: Optional[str] = typer.Option(
        None, "--filename", "-n", help="Filename for upload. Defaults to current timestamp"
    ),
    filetype: Optional[str] = typer.Option(None, "--filetype", help="Specify filetype for syntax highlighting"),
    noop: bool = typer.Option(False, "--noop", help="Skip posting file to Slack. Useful for testing"),
    stream: bool = typer.Option(
        False,
        "--stream",
        "-s",
        help="Stream messages to Slack continuously instead of uploading a single snippet",
    ),
    tee: bool = typer.Option(False, "--tee", "-t", help="Print stdin to screen before posting"),
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=_version_callback,
        is_eager=True,
        help="Print the version",
    ),
) -> None:
    """redirect a file to slack"""

    try:
        settings = load_settings()
        if configure:
            configure_oauth(settings)
            raise typer.Exit(code=0)

        team, target_channel = parse_channel_opt(settings, channel)
        token = resolve_token(settings, team)

        if file_path is not None:
            if stream:
                output("filepath provided, ignoring stream option")
            payload = FilePayload(
                path=file_path,
                filename=filename or file_path.name,
                filetype=filetype,
                comment=comment,
            )
            result = asyncio.run(
                _with_sender(
                    settings,
                    team=team,
                    channel=target_channel,
                    token=token,
                    noop=noop,
                    action=lambda sender: upload_file(sender, payload),
                )
            )
            _report_upload(result, target_channel)
            return

        if stream:
            output("starting stream")
            pipeline_opts = StreamOptions(
                max_lines=settings.stream_batch_lines,
                max_chars=settings.stream_batch_chars,
                flush_interval=settings.stream_flush_interval_seconds,
                tee=tee,
            )

            async def _run_stream(sender: SlackSender) -> StreamReport:
                pipeline = StreamPipeline(sender, options=pipeline_opts, hooks=_stream_hooks(target_channel))
                return await pipeline.run(sys.stdin, echo=sys.stdout)

            report = asyncio.run(
                _with_sender(
                    settings,
                    team=team,
                    channel=target_channel,
                    token=token,
                    noop=noop,
                    action=_run_stream,
                )
            )
            if report.batches_failed:
                output(f"{report.batches_failed} batches could not be delivered", style="yellow")
            return

        result = asyncio.run(
            _with_sender(
                settings,
                team=team,
                channel=target_channel,
                token=token,
                noop=noop,
                action=lambda sender: upload_stream(
                    sender,
                    sys.stdin,
                    filename=filename,
                    filetype=filetype,
                    comment=comment,
                    tee=tee,
                    echo=sys.stdout,
                ),
            )
        )
        _report_upload(result, target_channel)
    except ValidationError as exc:
        exit_err(ConfigError(f"invalid configuration: {exc.errors()[0]['msg']}"))
    except SlackcatError as exc:
        exit_err(exc)
    except KeyboardInterrupt:
        # Outside the stream pipeline nothing is buffered for delivery.
        exit_err(InputError("interrupted"))


def run() -> None:
    app(prog_name="slackcat")
