"""Output formatting for stowctl.

Provides consistent output in JSON, key-value, and quiet modes using Rich.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

# =============================================================================
# Console Instances
# =============================================================================

console = Console()
err_console = Console(stderr=True)


# =============================================================================
# Output Format
# =============================================================================


class OutputFormat(Enum):
    """Output format options."""

    JSON = "json"
    TABLE = "table"

    @classmethod
    def from_string(cls, value: str) -> OutputFormat:
        """Create from string value."""
        return cls(value.lower())


# =============================================================================
# Key-Value Output
# =============================================================================


def print_key_value(
    data: dict[str, Any],
    *,
    title: str | None = None,
    key_labels: dict[str, str] | None = None,
) -> None:
    """Print key-value pairs, one per line."""
    if title:
        console.print(f"[bold]{title}[/bold]")

    labels = {k: (key_labels or {}).get(k, k.replace("_", " ").title()) for k in data}
    width = max((len(label) for label in labels.values()), default=0)

    for key, value in data.items():
        if value is None:
            shown = "[dim]-[/dim]"
        elif isinstance(value, bool):
            shown = "[green]Yes[/green]" if value else "[red]No[/red]"
        elif isinstance(value, (list, dict)):
            shown = json.dumps(value, indent=2)
        else:
            shown = str(value)
        console.print(f"  {labels[key]:<{width}}  {shown}")


# =============================================================================
# JSON Output
# =============================================================================


def print_json(data: Any, *, indent: int = 2) -> None:
    """Print data as JSON to stdout."""
    print(json.dumps(data, indent=indent, default=str))


# =============================================================================
# Unified Output
# =============================================================================


def print_output(
    data: dict[str, Any],
    *,
    format: OutputFormat = OutputFormat.TABLE,
    title: str | None = None,
    quiet: bool = False,
    id_field: str = "destination",
) -> None:
    """Print a result record in the requested format.

    Quiet mode prints only ``data[id_field]`` so the output can be piped.
    """
    if quiet:
        print(data.get(id_field, ""))
    elif format == OutputFormat.JSON:
        print_json(data)
    else:
        print_key_value(data, title=title)


# =============================================================================
# Status Messages
# =============================================================================


def print_error(message: str) -> None:
    """Print error message to stderr."""
    err_console.print(f"[red]Error:[/red] {message}")


def print_warning(message: str) -> None:
    """Print warning message to stderr."""
    err_console.print(f"[yellow]Warning:[/yellow] {message}")


def print_success(message: str) -> None:
    """Print success message."""
    console.print(f"[green]✓[/green] {message}")


# =============================================================================
# Progress
# =============================================================================


def create_progress(*, transient: bool = False) -> Progress:
    """Create a Rich progress bar for byte transfers.

    Returns:
        Progress instance showing bytes sent, speed and time remaining.
    """
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        DownloadColumn(binary_units=True),
        TransferSpeedColumn(),
        TimeRemainingColumn(),
        console=err_console,
        transient=transient,
    )
