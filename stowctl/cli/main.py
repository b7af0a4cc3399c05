"""Main CLI entry point for stowctl."""

from __future__ import annotations

import click

from stowctl import __version__
from stowctl.cli.auth import auth
from stowctl.cli.config_cmd import config
from stowctl.cli.upload import upload

# =============================================================================
# Main CLI Group
# =============================================================================


@click.group()
@click.version_option(version=__version__, prog_name="stowctl")
def cli() -> None:
    """stowctl - resumable uploads to object storage.

    Uploads files with live progress. Large files go through a resumable
    session that survives dropped connections; press Ctrl-C to cancel.

    Get started:

      stowctl config init        # Create config file

      stowctl auth login         # Cache an access token

      stowctl upload FILE gs://bucket/path

    Use --help on any command for more information.
    """
    pass


# =============================================================================
# Register Commands
# =============================================================================

cli.add_command(config)
cli.add_command(auth)
cli.add_command(upload)


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
