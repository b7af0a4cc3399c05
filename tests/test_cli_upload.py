"""Tests for the stowctl upload command."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from stowctl.cli.main import cli
from stowctl.core.client import StorageClient
from stowctl.core.config import Config
from stowctl.core.exceptions import AuthenticationError, ServerResponseError
from stowctl.models.progress import TaskState
from stowctl.services.uploads import UploadService
from stowctl.uploaders.task import UploadTask

BASE_URL = "https://storage.example.org"


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def source(tmp_path: Path) -> Path:
    path = tmp_path / "notes.txt"
    path.write_text("hello world")
    return path


def _service(backend, token_provider) -> UploadService:
    return UploadService(
        StorageClient(BASE_URL),
        token_provider=token_provider,
        backend=backend,
        default_bucket="demo-bucket",
    )


def _invoke(runner: CliRunner, service: UploadService, args: list[str]):
    with (
        patch("stowctl.cli.common.Config.load", return_value=Config()),
        patch("stowctl.cli.common.Context.get_service", return_value=service),
    ):
        return runner.invoke(cli, ["upload", *args])


# =============================================================================
# Successful Uploads
# =============================================================================


class TestUploadCommand:
    """Tests for upload command output."""

    def test_upload_table(self, runner, source, fake_server, token_provider):
        service = _service(fake_server, token_provider)

        result = _invoke(runner, service, [str(source), "docs/notes.txt"])

        assert result.exit_code == 0, result.output
        assert "Uploaded notes.txt to gs://demo-bucket/docs/notes.txt" in result.output
        assert fake_server.calls == ["one_shot"]
        assert fake_server.metadata.content_type == "text/plain"

    def test_upload_json(self, runner, source, fake_server, token_provider):
        service = _service(fake_server, token_provider)

        result = _invoke(runner, service, [str(source), "gs://other-bucket/a.txt", "-o", "json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["destination"] == "gs://other-bucket/a.txt"
        assert data["state"] == "success"
        assert data["success"] is True
        assert data["generation"] == "1"

    def test_upload_quiet(self, runner, source, fake_server, token_provider):
        service = _service(fake_server, token_provider)

        result = _invoke(runner, service, [str(source), "a.txt", "-q"])

        assert result.exit_code == 0, result.output
        assert result.stdout.strip() == "gs://demo-bucket/a.txt"

    def test_metadata_options(self, runner, source, fake_server, token_provider):
        service = _service(fake_server, token_provider)

        result = _invoke(
            runner,
            service,
            [str(source), "a.txt", "-t", "text/markdown", "-m", "owner=alice", "-m", "run=7"],
        )

        assert result.exit_code == 0, result.output
        assert fake_server.metadata.content_type == "text/markdown"
        assert fake_server.metadata.custom_metadata == {"owner": "alice", "run": "7"}

    def test_resumable_with_chunk_size(
        self, runner, tmp_path, fake_server, token_provider, make_payload
    ):
        source = tmp_path / "big.bin"
        source.write_bytes(make_payload(600 * 1024).read_all())
        service = _service(fake_server, token_provider)

        result = _invoke(runner, service, [str(source), "big.bin", "--chunk-size", "524288"])

        assert result.exit_code == 0, result.output
        assert fake_server.calls[0] == "create_session"
        assert fake_server.chunks[0] == (0, 512 * 1024)
        assert fake_server.received == 600 * 1024

    def test_dry_run(self, runner, source, fake_server, token_provider):
        service = _service(fake_server, token_provider)

        result = _invoke(runner, service, [str(source), "a.txt", "--dry-run"])

        assert result.exit_code == 0, result.output
        assert "[DRY-RUN]" in result.output
        assert "gs://demo-bucket/a.txt" in result.output
        assert "Size: 11 bytes" in result.output
        assert "Mode: one-shot" in result.output
        assert fake_server.calls == []


# =============================================================================
# Failures
# =============================================================================


class TestUploadFailures:
    """Tests for upload command error handling."""

    def test_missing_source(self, runner, tmp_path, fake_server, token_provider):
        service = _service(fake_server, token_provider)

        result = _invoke(runner, service, [str(tmp_path / "nope.txt"), "a.txt"])

        assert result.exit_code == 2
        assert fake_server.calls == []

    def test_bad_meta(self, runner, source, fake_server, token_provider):
        service = _service(fake_server, token_provider)

        result = _invoke(runner, service, [str(source), "a.txt", "-m", "novalue"])

        assert result.exit_code == 2
        assert "key=value" in result.output

    def test_invalid_destination(self, runner, source, fake_server, token_provider):
        service = _service(fake_server, token_provider)

        result = _invoke(runner, service, [str(source), "gs://Bad Bucket/a.txt"])

        assert result.exit_code == 1
        assert "Invalid destination" in result.output

    def test_server_error(self, runner, source, fake_server, token_provider):
        fake_server.fail_next("one_shot", ServerResponseError(BASE_URL, 500, "down"))
        service = _service(fake_server, token_provider)

        result = _invoke(runner, service, [str(source), "a.txt"])

        assert result.exit_code == 3
        assert "down" in result.output

    def test_auth_error(self, runner, source, fake_server, token_provider):
        fake_server.fail_next("one_shot", AuthenticationError(BASE_URL, "expired"))
        service = _service(fake_server, token_provider)

        result = _invoke(runner, service, [str(source), "a.txt", "-o", "json"])

        assert result.exit_code == 2
        assert "expired" in result.output

    def test_interrupt_cancels_upload(
        self, runner, source, manual_backend, token_provider, monkeypatch
    ):
        real_result = UploadTask.result
        tasks: list[UploadTask] = []

        def interrupted(self, timeout=None):
            if not tasks:
                tasks.append(self)
                raise KeyboardInterrupt
            return real_result(self, timeout)

        monkeypatch.setattr(UploadTask, "result", interrupted)
        service = _service(manual_backend, token_provider)

        result = _invoke(runner, service, [str(source), "a.txt"])

        assert result.exit_code == 5
        assert "canceling upload" in result.output
        assert manual_backend.operations == ["one_shot"]
        assert tasks[0].state is TaskState.CANCELED
