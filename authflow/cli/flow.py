"""Flow step CLI commands.

Each command runs one operation of the authorization code flow against the
configured provider and prints the resulting artifact as JSON.
"""

from __future__ import annotations

import json
import secrets
from typing import Any, NoReturn

import click

from authflow.core.config import load_provider_config
from authflow.core.oidc import ConfigurationError, OAuthClient


def output_result(data: Any) -> None:
    """Print a result as indented JSON."""
    click.echo(json.dumps(data, indent=2, default=str))


def fail(client: OAuthClient, operation: str) -> NoReturn:
    """Abort with the client's last error."""
    error = client.last_error
    message = error.message if error else "unknown error"
    if error and error.status_code:
        message = f"{message} (HTTP {error.status_code})"
    raise click.ClickException(f"{operation} failed: {message}")


def make_client(ctx: click.Context) -> OAuthClient:
    """Build an OAuthClient from the CLI context."""
    obj = ctx.ensure_object(dict)
    try:
        config = load_provider_config(obj.get("config_path"), preset=obj.get("preset"))
        return OAuthClient(
            config,
            protocol_logger=obj.get("protocol_logger"),
            transport=obj.get("transport"),
        )
    except (ConfigurationError, ValueError) as e:
        raise click.ClickException(f"Invalid configuration: {e}") from None


def resolve_code(client: OAuthClient, value: str, operation: str) -> str:
    """Accept either a bare code or the full redirect URL carrying it."""
    if not value.startswith(("http://", "https://")):
        return value
    code = client.code_from_redirect(value)
    if code is None:
        fail(client, operation)
    return code


@click.command("url")
@click.option("--variant", "-v", type=int, default=None, help="Authorization field variant index.")
@click.option("--state", default=None, help="State value (random if omitted).")
@click.pass_context
def url(ctx: click.Context, variant: int | None, state: str | None) -> None:
    """Print the authorization URL to open in a browser."""
    with make_client(ctx) as client:
        try:
            click.echo(client.build_authorization_url(index=variant, state=state or secrets.token_urlsafe(32)))
        except ConfigurationError as e:
            raise click.ClickException(str(e)) from None


@click.command("exchange")
@click.argument("code")
@click.pass_context
def exchange(ctx: click.Context, code: str) -> None:
    """Exchange an authorization CODE for tokens.

    CODE may also be the full redirect URL the provider sent the browser to.
    """
    with make_client(ctx) as client:
        result = client.exchange_code(resolve_code(client, code, "exchange"))
        if result is None:
            fail(client, "exchange")
        output_result(result.to_dict())


@click.command("verify")
@click.argument("access_token")
@click.pass_context
def verify(ctx: click.Context, access_token: str) -> None:
    """Verify ACCESS_TOKEN at the token info endpoint."""
    with make_client(ctx) as client:
        result = client.verify(access_token)
        if result is None:
            fail(client, "verify")
        output_result(result.to_dict())


@click.command("userinfo")
@click.argument("access_token")
@click.pass_context
def userinfo(ctx: click.Context, access_token: str) -> None:
    """Fetch the profile of the user ACCESS_TOKEN belongs to."""
    with make_client(ctx) as client:
        result = client.fetch_user_info(access_token)
        if result is None:
            fail(client, "userinfo")
        output_result(result.to_dict())


@click.command("validate")
@click.argument("access_token")
@click.pass_context
def validate(ctx: click.Context, access_token: str) -> None:
    """Verify ACCESS_TOKEN, fetch the profile and cross-validate them."""
    with make_client(ctx) as client:
        verify_result = client.verify(access_token)
        if verify_result is None:
            fail(client, "verify")
        profile = client.fetch_user_info(access_token)
        if profile is None:
            fail(client, "userinfo")

        valid = client.validate(verify_result, profile)
        if client.last_validation is not None:
            output_result(client.last_validation.to_dict())
        if not valid:
            fail(client, "validate")


@click.command("login")
@click.argument("code")
@click.pass_context
def login(ctx: click.Context, code: str) -> None:
    """Run exchange, verify, userinfo and validate for CODE.

    CODE may also be the full redirect URL. Prints the session data to
    store for the user.
    """
    with make_client(ctx) as client:
        ok = client.authenticate(resolve_code(client, code, "login"))
        output_result({"status": client.status.value, **client.to_session()})
        if not ok:
            fail(client, "login")


@click.command("refresh")
@click.argument("refresh_token")
@click.pass_context
def refresh(ctx: click.Context, refresh_token: str) -> None:
    """Obtain a new access token with REFRESH_TOKEN."""
    with make_client(ctx) as client:
        result = client.refresh(refresh_token)
        if result is None:
            fail(client, "refresh")
        output_result(result.to_dict())


@click.command("revoke")
@click.argument("token")
@click.pass_context
def revoke(ctx: click.Context, token: str) -> None:
    """Revoke TOKEN, unregistering the application from the user's account."""
    with make_client(ctx) as client:
        if not client.revoke_token(token):
            fail(client, "revoke")
        click.echo("Token revoked.")


COMMANDS = [url, exchange, verify, userinfo, validate, login, refresh, revoke]
