"""Common CLI utilities, decorators, and helpers."""

from __future__ import annotations

import sys
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

import click

from stowctl.core.auth import AuthManager, CachedTokenProvider, StaticTokenProvider
from stowctl.core.config import ENV_PROFILE, Config
from stowctl.core.exceptions import (
    AuthFailure,
    ConfigurationError,
    PermissionDeniedError,
    ProfileNotFoundError,
    StowCtlError,
    TransportFailure,
    UploadCanceledError,
)
from stowctl.core.logging import setup_logging
from stowctl.core.output import OutputFormat, print_error, print_warning
from stowctl.services.uploads import UploadService

F = TypeVar("F", bound=Callable[..., Any])


# =============================================================================
# Exit Codes
# =============================================================================


class ExitCode:
    """Standard exit codes."""

    SUCCESS = 0
    GENERAL_ERROR = 1
    AUTH_ERROR = 2
    NETWORK_ERROR = 3
    PERMISSION_ERROR = 4
    USER_CANCELLED = 5


def exit_code_for(error: BaseException) -> int:
    """Map an exception to the process exit code."""
    if isinstance(error, UploadCanceledError):
        return ExitCode.USER_CANCELLED
    if isinstance(error, PermissionDeniedError):
        return ExitCode.PERMISSION_ERROR
    if isinstance(error, AuthFailure):
        return ExitCode.AUTH_ERROR
    if isinstance(error, TransportFailure):
        return ExitCode.NETWORK_ERROR
    return ExitCode.GENERAL_ERROR


# =============================================================================
# Context Object
# =============================================================================


class Context:
    """CLI context object passed to commands."""

    def __init__(self) -> None:
        self.config: Optional[Config] = None
        self.service: Optional[UploadService] = None
        self.profile_name: Optional[str] = None
        self.output_format: OutputFormat = OutputFormat.TABLE
        self.quiet: bool = False
        self.verbose: bool = False
        self.auth_manager: AuthManager = AuthManager()

    def get_service(self, token: Optional[str] = None) -> UploadService:
        """Get or create the upload service for the active profile.

        Args:
            token: Access token to use instead of STOW_TOKEN or the cache.

        Raises:
            ConfigurationError: If the profile does not exist.
        """
        if self.service is not None:
            return self.service

        if self.config is None:
            self.config = Config.load()

        try:
            profile = self.config.get_profile(self.profile_name)
        except ProfileNotFoundError:
            raise ConfigurationError(
                f"Profile '{self.profile_name or self.config.default_profile}' not found. "
                "Run 'stowctl config init' to create one."
            )

        provider = (
            StaticTokenProvider(token)
            if token
            else CachedTokenProvider(self.auth_manager, profile.url)
        )
        self.service = UploadService.from_profile(profile, token_provider=provider)
        return self.service


pass_context = click.make_pass_decorator(Context, ensure=True)


# =============================================================================
# Global Options
# =============================================================================


def global_options(f: F) -> F:
    """Add global options to a command."""

    @click.option(
        "--profile",
        "-p",
        envvar=ENV_PROFILE,
        help="Config profile to use",
    )
    @click.option(
        "--output",
        "-o",
        "output_format",
        type=click.Choice(["json", "table"]),
        default="table",
        help="Output format",
    )
    @click.option(
        "--quiet",
        "-q",
        is_flag=True,
        help="Minimal output (object URL only)",
    )
    @click.option(
        "--verbose",
        "-v",
        is_flag=True,
        help="Enable verbose output",
    )
    @pass_context
    @wraps(f)
    def wrapper(
        ctx: Context,
        profile: Optional[str],
        output_format: str,
        quiet: bool,
        verbose: bool,
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """Populate context from global options and invoke the command."""
        ctx.profile_name = profile
        ctx.output_format = OutputFormat.from_string(output_format)
        ctx.quiet = quiet
        ctx.verbose = verbose

        setup_logging(quiet=quiet, verbose=verbose)
        ctx.config = Config.load()

        return f(ctx, *args, **kwargs)

    return wrapper  # type: ignore


# =============================================================================
# Option Parsing
# =============================================================================


def parse_key_values(values: tuple[str, ...]) -> dict[str, str]:
    """Parse repeated ``key=value`` options.

    Raises:
        click.BadParameter: If an item has no ``=``.
    """
    result: dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected key=value, got {item!r}")
        result[key.strip()] = value
    return result


# =============================================================================
# Error Handling
# =============================================================================


def handle_errors(f: F) -> F:
    """Handle common errors and convert to CLI exit codes."""

    @wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        """Capture errors and exit with consistent messaging."""
        try:
            return f(*args, **kwargs)
        except UploadCanceledError as e:
            print_warning(str(e))
            sys.exit(ExitCode.USER_CANCELLED)
        except StowCtlError as e:
            print_error(str(e))
            sys.exit(exit_code_for(e))
        except click.ClickException:
            raise
        except FileNotFoundError as e:
            print_error(str(e))
            sys.exit(ExitCode.GENERAL_ERROR)
        except Exception as e:
            print_error(f"Unexpected error: {e}")
            sys.exit(ExitCode.GENERAL_ERROR)

    return wrapper  # type: ignore
