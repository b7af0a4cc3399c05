"""Tests for stowctl CLI common helpers."""

from __future__ import annotations

from unittest.mock import patch

import click
import pytest
from click.testing import CliRunner

from stowctl.cli.common import (
    Context,
    ExitCode,
    exit_code_for,
    global_options,
    handle_errors,
    parse_key_values,
)
from stowctl.core.auth import CachedTokenProvider, StaticTokenProvider
from stowctl.core.config import Config, Profile
from stowctl.core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    NetworkError,
    PermissionDeniedError,
    RetryExhaustedError,
    StowCtlError,
    UploadCanceledError,
    ValidationError,
)
from stowctl.core.output import OutputFormat


def _config() -> Config:
    return Config(
        default_profile="default",
        profiles={
            "default": Profile(url="https://storage.example.org", bucket="demo-bucket"),
        },
    )


# =============================================================================
# Exit Codes
# =============================================================================


class TestExitCodeFor:
    """Tests for mapping errors to exit codes."""

    @pytest.mark.parametrize(
        ("error", "code"),
        [
            (UploadCanceledError(), ExitCode.USER_CANCELLED),
            (PermissionDeniedError("gs://b/o"), ExitCode.PERMISSION_ERROR),
            (AuthenticationError("https://storage.example.org"), ExitCode.AUTH_ERROR),
            (NetworkError("https://storage.example.org", "refused"), ExitCode.NETWORK_ERROR),
            (RetryExhaustedError("POST /o", 4), ExitCode.NETWORK_ERROR),
            (ValidationError("bad"), ExitCode.GENERAL_ERROR),
            (RuntimeError("boom"), ExitCode.GENERAL_ERROR),
        ],
    )
    def test_mapping(self, error, code):
        assert exit_code_for(error) == code


# =============================================================================
# Option Parsing
# =============================================================================


class TestParseKeyValues:
    """Tests for parse_key_values."""

    def test_parses_pairs(self):
        assert parse_key_values(("owner=alice", " run =42", "empty=")) == {
            "owner": "alice",
            "run": "42",
            "empty": "",
        }

    def test_value_may_contain_equals(self):
        assert parse_key_values(("expr=a=b",)) == {"expr": "a=b"}

    @pytest.mark.parametrize("item", ["novalue", "=value", " =x"])
    def test_invalid(self, item):
        with pytest.raises(click.BadParameter):
            parse_key_values((item,))


# =============================================================================
# Error Handling
# =============================================================================


class TestHandleErrors:
    """Tests for the handle_errors decorator."""

    @staticmethod
    def _command(error: BaseException) -> click.Command:
        @click.command()
        @handle_errors
        def failing() -> None:
            raise error

        return failing

    @pytest.mark.parametrize(
        ("error", "code", "text"),
        [
            (UploadCanceledError(), 5, "Warning"),
            (StowCtlError("plain failure"), 1, "plain failure"),
            (NetworkError("https://storage.example.org"), 3, "Network error"),
            (PermissionDeniedError("gs://b/o"), 4, "Permission denied"),
            (FileNotFoundError("missing.bin"), 1, "missing.bin"),
            (RuntimeError("boom"), 1, "Unexpected error: boom"),
        ],
    )
    def test_exit_codes(self, error, code, text):
        result = CliRunner().invoke(self._command(error))

        assert result.exit_code == code
        assert text in result.output

    def test_click_exceptions_pass_through(self):
        result = CliRunner().invoke(self._command(click.UsageError("wrong usage")))

        assert result.exit_code == 2
        assert "wrong usage" in result.output


# =============================================================================
# Context
# =============================================================================


class TestContext:
    """Tests for the CLI Context object."""

    def test_missing_profile(self):
        ctx = Context()
        ctx.config = _config()
        ctx.profile_name = "ghost"

        with pytest.raises(ConfigurationError, match="Profile 'ghost' not found"):
            ctx.get_service()

    def test_empty_config(self):
        ctx = Context()
        ctx.config = Config()

        with pytest.raises(ConfigurationError, match="config init"):
            ctx.get_service()

    def test_explicit_token(self):
        ctx = Context()
        ctx.config = _config()

        service = ctx.get_service("secret")

        assert isinstance(service.token_provider, StaticTokenProvider)
        assert service.token_provider.get_token().result() == "secret"
        assert service.default_bucket == "demo-bucket"
        assert ctx.get_service() is service
        service.close()

    def test_cached_token_by_default(self):
        ctx = Context()
        ctx.config = _config()

        service = ctx.get_service()

        assert isinstance(service.token_provider, CachedTokenProvider)
        service.close()

    def test_loads_config_lazily(self):
        ctx = Context()

        with patch("stowctl.cli.common.Config.load", return_value=_config()) as load:
            service = ctx.get_service("secret")

        load.assert_called_once_with()
        assert service.client.base_url == "https://storage.example.org"
        service.close()


class TestGlobalOptions:
    """Tests for the global_options decorator."""

    def test_populates_context(self):
        seen = {}

        @click.command()
        @global_options
        def show(ctx: Context) -> None:
            seen["ctx"] = ctx

        with patch("stowctl.cli.common.Config.load", return_value=_config()):
            result = CliRunner().invoke(show, ["-p", "default", "-o", "json", "-q"])

        assert result.exit_code == 0, result.output
        ctx = seen["ctx"]
        assert ctx.profile_name == "default"
        assert ctx.output_format is OutputFormat.JSON
        assert ctx.quiet is True
        assert ctx.config.has_profile("default")

    def test_profile_from_environment(self, monkeypatch):
        seen = {}

        @click.command()
        @global_options
        def show(ctx: Context) -> None:
            seen["profile"] = ctx.profile_name

        monkeypatch.setenv("STOW_PROFILE", "staging")
        with patch("stowctl.cli.common.Config.load", return_value=_config()):
            CliRunner().invoke(show, [])

        assert seen["profile"] == "staging"
