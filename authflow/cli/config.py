"""Configuration management CLI commands."""

from __future__ import annotations

from pathlib import Path

import click
import yaml

from authflow.core.config import DEFAULT_CONFIG_FILE, get_default_config_yaml, load_provider_config
from authflow.core.oidc import ConfigurationError
from authflow.idp_presets import list_presets


@click.group()
def config() -> None:
    """Manage authflow configuration."""
    pass


@config.command("init")
@click.option(
    "--path",
    "path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Where to write the file (default: ~/.authflow/config.yaml).",
)
@click.option("--force", is_flag=True, help="Overwrite an existing config file.")
def config_init(path: Path | None, force: bool) -> None:
    """Write an example config.yaml.

    Examples:

        # Write to the default location
        authflow config init

        # Write somewhere else
        authflow config init --path ./authflow.yaml
    """
    target = path or DEFAULT_CONFIG_FILE
    if target.exists() and not force:
        click.echo(f"Config file already exists: {target}")
        click.echo("Use --force to overwrite it.")
        return

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(get_default_config_yaml())
    click.echo(f"Config file written to: {target}")


@config.command("show")
@click.option("--show-secret", is_flag=True, help="Include the client secret.")
@click.pass_context
def config_show(ctx: click.Context, show_secret: bool) -> None:
    """Show the effective provider configuration."""
    obj = ctx.ensure_object(dict)
    try:
        provider = load_provider_config(obj.get("config_path"), preset=obj.get("preset"))
    except (ConfigurationError, ValueError) as e:
        raise click.ClickException(f"Invalid configuration: {e}") from None
    click.echo(yaml.safe_dump(provider.to_dict(include_secret=show_secret), default_flow_style=False))


@config.command("presets")
def config_presets() -> None:
    """List available provider presets."""
    for preset in list_presets():
        click.echo(f"{preset['id']:<10} {preset['description']}")
