"""CLI entry point for authflow."""

from __future__ import annotations

from pathlib import Path

import click

from authflow import __version__
from authflow.cli import config as config_commands
from authflow.cli import flow as flow_commands
from authflow.core.logging import configure_logging


@click.group()
@click.version_option(version=__version__, prog_name="authflow")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: ~/.authflow/config.yaml).",
)
@click.option("--preset", default=None, help="Provider preset (google, generic).")
@click.option(
    "--log-level",
    type=click.Choice(["ERROR", "INFO", "DEBUG", "TRACE"], case_sensitive=False),
    default="ERROR",
    show_default=True,
    help="Protocol log level. TRACE logs tokens and secrets.",
)
@click.option("--log-file", type=click.Path(dir_okay=False), default=None, help="Also write logs to a file.")
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: Path | None,
    preset: str | None,
    log_level: str,
    log_file: str | None,
) -> None:
    """authflow - OAuth2 / OpenID Connect Authorization Code Flow Client.

    Run the flow one step at a time: open the URL printed by 'authflow url',
    copy the code from the redirect, then 'authflow exchange <code>'.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["preset"] = preset
    ctx.obj["protocol_logger"] = configure_logging(
        log_level,
        trace_enabled=log_level.upper() == "TRACE",
        log_file=log_file,
    )


cli.add_command(config_commands.config)
for command in flow_commands.COMMANDS:
    cli.add_command(command)
