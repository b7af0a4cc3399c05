"""Token commands for stowctl."""

from __future__ import annotations

import click

from stowctl.core.auth import TOKEN_EXPIRY_MINUTES, AuthManager
from stowctl.core.config import Config
from stowctl.core.exceptions import ProfileNotFoundError
from stowctl.core.output import print_error, print_json, print_key_value, print_success, print_warning


def _profile_url(profile_name: str | None) -> str:
    config = Config.load()
    try:
        return config.get_profile(profile_name).url
    except ProfileNotFoundError as e:
        print_error(str(e))
        raise SystemExit(1) from e


@click.group()
def auth() -> None:
    """Manage cached access tokens."""
    pass


@auth.command("login")
@click.option("--profile", "-p", "profile_name", help="Profile the token belongs to")
@click.option("--token", help="Access token (will prompt if not provided)")
@click.option(
    "--expires-in",
    type=int,
    default=TOKEN_EXPIRY_MINUTES,
    show_default=True,
    help="Minutes until the cached token is discarded",
)
def auth_login(profile_name: str | None, token: str | None, expires_in: int) -> None:
    """Cache an access token for uploads.

    Example:
        stowctl auth login --token "$(gcloud auth print-identity-token)"
    """
    url = _profile_url(profile_name)
    if not token:
        token = click.prompt("Access token", hide_input=True)

    cached = AuthManager().save_token(token=token, url=url, expiry_minutes=expires_in)
    print_success(f"Token cached for {url}")
    click.echo(f"Token cached until {cached.expires_at}")


@auth.command("logout")
def auth_logout() -> None:
    """Clear the cached token."""
    if AuthManager().clear_token():
        print_success("Logged out")
    else:
        print_warning("No cached token found")


@auth.command("status")
@click.option("--profile", "-p", "profile_name", help="Profile to check")
@click.option("--output", "-o", type=click.Choice(["table", "json"]), default="table")
def auth_status(profile_name: str | None, output: str) -> None:
    """Show where the access token would come from."""
    url = _profile_url(profile_name)
    auth_mgr = AuthManager()
    cached = auth_mgr.load_token(url)

    status = {
        "url": url,
        "env_token": "(set)" if auth_mgr.get_token_from_env() else "(not set)",
        "token_cached": cached is not None,
        "token_expires": cached.expires_at.isoformat() if cached and cached.expires_at else None,
    }

    if output == "json":
        print_json(status)
    else:
        print_key_value(status, title="Auth Status")
