"""Config commands for stowctl."""

from __future__ import annotations

from typing import Optional

import click

from stowctl.core.config import CONFIG_FILE, DEFAULT_URL, Config
from stowctl.core.exceptions import ValidationError
from stowctl.core.output import OutputFormat, print_error, print_key_value, print_output, print_success
from stowctl.core.validation import validate_bucket, validate_chunk_size, validate_server_url
from stowctl.uploaders.constants import DEFAULT_CHUNK_SIZE


@click.group()
def config() -> None:
    """Manage stowctl configuration."""
    pass


@config.command("init")
@click.option("--bucket", prompt="Default bucket", help="Default bucket for bare object paths")
@click.option("--url", default=DEFAULT_URL, show_default=True, help="Storage API base URL")
@click.option("--profile", default="default", help="Profile name")
@click.option(
    "--chunk-size",
    type=int,
    default=DEFAULT_CHUNK_SIZE,
    show_default=True,
    help="Base chunk size for resumable uploads",
)
@click.option(
    "--max-status-refetches",
    type=int,
    default=None,
    help="Interrupted calls allowed in a row before an upload fails (default: unlimited)",
)
@click.option("--timeout", type=int, default=120, show_default=True, help="Request timeout")
@click.option("--no-verify-ssl", is_flag=True, help="Disable SSL verification")
@click.option("--force", is_flag=True, help="Overwrite an existing profile")
def config_init(
    bucket: str,
    url: str,
    profile: str,
    chunk_size: int,
    max_status_refetches: Optional[int],
    timeout: int,
    no_verify_ssl: bool,
    force: bool,
) -> None:
    """Create configuration file with a new profile.

    Example:
        stowctl config init --bucket my-app.appspot.com
    """
    try:
        url = validate_server_url(url)
        bucket = validate_bucket(bucket)
        chunk_size = validate_chunk_size(chunk_size)
    except ValidationError as e:
        print_error(str(e))
        raise SystemExit(1)

    cfg = Config.load() if CONFIG_FILE.exists() else Config()
    if cfg.has_profile(profile) and not force:
        print_error(f"Profile '{profile}' already exists. Use --force to overwrite.")
        raise SystemExit(1)

    cfg.add_profile(
        profile,
        url=url,
        bucket=bucket,
        chunk_size=chunk_size,
        max_status_refetches=max_status_refetches,
        timeout=timeout,
        verify_ssl=not no_verify_ssl,
    )
    if len(cfg.profiles) == 1:
        cfg.default_profile = profile
    cfg.save()

    print_success(f"Configuration saved to {CONFIG_FILE}")
    print_key_value({"profile": profile, "url": url, "bucket": bucket})


@config.command("show")
@click.option("--output", "-o", type=click.Choice(["json", "table"]), default="table")
def config_show(output: str) -> None:
    """Show current configuration."""
    cfg = Config.load()

    if not cfg.profiles:
        print_error("No configuration found. Run 'stowctl config init' first.")
        raise SystemExit(1)

    data = {
        "config_file": str(CONFIG_FILE),
        "default_profile": cfg.default_profile,
        "output_format": cfg.output_format,
        "profiles": list(cfg.profiles.keys()),
    }

    if output == "json":
        data["profile_details"] = {name: p.to_dict() for name, p in cfg.profiles.items()}
        print_output(data, format=OutputFormat.JSON)
        return

    print_key_value(data, title="Configuration")
    click.echo()
    for name, profile in cfg.profiles.items():
        marker = " (default)" if name == cfg.default_profile else ""
        click.echo(f"Profile: {name}{marker}")
        print_key_value(
            {
                "url": profile.url,
                "bucket": profile.bucket,
                "chunk_size": profile.chunk_size,
                "max_status_refetches": profile.max_status_refetches,
                "verify_ssl": profile.verify_ssl,
                "timeout": f"{profile.timeout}s",
            },
        )
        click.echo()


@config.command("use-context")
@click.argument("profile")
def config_use_context(profile: str) -> None:
    """Switch the active profile.

    Example:
        stowctl config use-context production
    """
    cfg = Config.load()

    if not cfg.has_profile(profile):
        print_error(f"Profile '{profile}' not found.")
        click.echo(f"Available profiles: {', '.join(cfg.profiles.keys())}")
        raise SystemExit(1)

    cfg.set_default_profile(profile)
    cfg.save()

    print_success(f"Switched to profile '{profile}'")


@config.command("current-context")
def config_current_context() -> None:
    """Show the current active profile."""
    cfg = Config.load()
    if not cfg.profiles:
        print_error("No configuration found.")
        raise SystemExit(1)
    click.echo(cfg.default_profile)


@config.command("remove")
@click.argument("name")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
def config_remove(name: str, yes: bool) -> None:
    """Remove a profile.

    Example:
        stowctl config remove staging
    """
    cfg = Config.load()

    if not cfg.has_profile(name):
        print_error(f"Profile '{name}' not found.")
        raise SystemExit(1)

    if name == cfg.default_profile:
        print_error("Cannot remove the default profile. Switch to another profile first.")
        raise SystemExit(1)

    if not yes:
        click.confirm(f"Remove profile '{name}'?", abort=True)

    cfg.remove_profile(name)
    cfg.save()

    print_success(f"Profile '{name}' removed")
