"""Upload command for stowctl."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import click

from stowctl.cli.common import Context, global_options, handle_errors, parse_key_values
from stowctl.core.exceptions import StowCtlError
from stowctl.core.logging import log_context
from stowctl.core.output import (
    OutputFormat,
    create_progress,
    print_output,
    print_success,
    print_warning,
)
from stowctl.models.progress import UploadSnapshot
from stowctl.uploaders.constants import RESUMABLE_THRESHOLD
from stowctl.uploaders.task import UploadTask

logger = logging.getLogger(__name__)


def _wait_for(task: UploadTask) -> UploadSnapshot:
    """Block until the task finishes; Ctrl-C cancels it."""
    try:
        return task.result()
    except KeyboardInterrupt:
        print_warning("Interrupted, canceling upload...")
        task.cancel()
        return task.result()


@click.command("upload")
@click.argument("source", type=click.Path(exists=True, dir_okay=False))
@click.argument("destination")
@click.option("--content-type", "-t", help="Content type (guessed from the file name by default)")
@click.option(
    "--chunk-size",
    type=int,
    help="Base chunk size in bytes for resumable uploads (multiple of 262144)",
)
@click.option(
    "--meta",
    "-m",
    multiple=True,
    help="Custom metadata as key=value (repeatable)",
)
@click.option("--token", help="Access token (overrides STOW_TOKEN and the token cache)")
@click.option("--dry-run", is_flag=True, help="Preview without uploading")
@global_options
@handle_errors
def upload(
    ctx: Context,
    source: str,
    destination: str,
    content_type: Optional[str],
    chunk_size: Optional[int],
    meta: tuple[str, ...],
    token: Optional[str],
    dry_run: bool,
) -> None:
    """Upload a file to object storage.

    DESTINATION is gs://bucket/path, or a bare object path when the profile
    sets a default bucket. Files larger than 256 KiB use a resumable session
    with growing chunks.

    Example:
        stowctl upload ./scan.tar gs://my-bucket/archive/scan.tar
        stowctl upload ./notes.txt docs/notes.txt -m owner=alice
    """
    source_path = Path(source)
    custom = parse_key_values(meta)
    service = ctx.get_service(token)

    try:
        dest = service.resolve_destination(destination)
        if dry_run:
            size = source_path.stat().st_size
            click.echo("[DRY-RUN] Would upload with the following settings:")
            click.echo(f"  Source: {source_path}")
            click.echo(f"  Destination: {dest}")
            click.echo(f"  Size: {size} bytes")
            click.echo(f"  Mode: {'resumable' if size > RESUMABLE_THRESHOLD else 'one-shot'}")
            return

        with log_context("upload", logger, source=source_path, destination=dest) as lc:
            task = service.start_upload(
                source_path,
                dest,
                content_type=content_type,
                custom_metadata=custom or None,
                chunk_size=chunk_size,
                autostart=False,
            )
            show_progress = ctx.output_format == OutputFormat.TABLE and not ctx.quiet

            error: Optional[StowCtlError] = None
            try:
                if show_progress:
                    with create_progress(transient=True) as progress:
                        bar = progress.add_task(
                            f"Uploading {source_path.name}", total=task.total_bytes
                        )
                        task.on(
                            "progress",
                            lambda s: progress.update(bar, completed=s.transferred_bytes),
                        )
                        task.start()
                        _wait_for(task)
                else:
                    task.start()
                    _wait_for(task)
            except StowCtlError as e:
                error = e

            summary = service.summarize(task, lc.elapsed, [str(error)] if error else None)
            if error is not None:
                raise error
    finally:
        service.close()

    if ctx.output_format == OutputFormat.TABLE and not ctx.quiet:
        print_success(f"Uploaded {source_path.name} to {summary.destination}")
    print_output(summary.to_dict(), format=ctx.output_format, quiet=ctx.quiet)
