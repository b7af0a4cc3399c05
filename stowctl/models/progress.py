"""Progress models for tracking upload status.

Provides the immutable snapshot handed to observers and to the completion
future, and the summary the CLI reports once an upload finishes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .metadata import ObjectMetadata


class TaskState(Enum):
    """Externally visible state of an upload task."""

    RUNNING = "running"
    PAUSED = "paused"
    SUCCESS = "success"
    CANCELED = "canceled"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskState.SUCCESS, TaskState.CANCELED, TaskState.ERROR)


@dataclass(frozen=True)
class UploadSnapshot:
    """Point-in-time record of upload progress."""

    transferred_bytes: int
    total_bytes: int
    state: TaskState
    metadata: Optional[ObjectMetadata] = None

    @property
    def percent(self) -> float:
        """Calculate completion percentage."""
        if self.total_bytes == 0:
            return 100.0 if self.state == TaskState.SUCCESS else 0.0
        return (self.transferred_bytes / self.total_bytes) * 100

    @property
    def mb_transferred(self) -> float:
        """Return megabytes transferred."""
        return self.transferred_bytes / (1024 * 1024)

    @property
    def total_mb(self) -> float:
        """Return total megabytes."""
        return self.total_bytes / (1024 * 1024)


@dataclass
class UploadSummary:
    """Upload operation summary."""

    success: bool
    destination: str
    state: str
    total_bytes: int
    transferred_bytes: int
    duration: float
    errors: List[str] = field(default_factory=list)
    metadata: Optional[ObjectMetadata] = None

    @property
    def total_size_mb(self) -> float:
        return self.total_bytes / (1024 * 1024)

    @property
    def throughput_mbps(self) -> float:
        """Calculate upload throughput in MB/s."""
        if self.duration == 0:
            return 0.0
        return (self.transferred_bytes / (1024 * 1024)) / self.duration

    def to_dict(self) -> dict:
        data = {
            "destination": self.destination,
            "state": self.state,
            "success": self.success,
            "size_mb": round(self.total_size_mb, 2),
            "duration_s": round(self.duration, 2),
            "throughput_mbps": round(self.throughput_mbps, 2),
        }
        if self.metadata is not None:
            data["generation"] = self.metadata.generation
            data["md5_hash"] = self.metadata.md5_hash
            data["content_type"] = self.metadata.content_type
        if self.errors:
            data["errors"] = self.errors
        return data
