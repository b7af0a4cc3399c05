"""Data models for stowctl.

Provides Pydantic models for object metadata and dataclasses for upload
progress tracking.
"""

from __future__ import annotations

from .base import BaseModel
from .destination import Destination
from .metadata import ObjectMetadata
from .progress import TaskState, UploadSnapshot, UploadSummary

__all__ = [
    # Base
    "BaseModel",
    # Resources
    "Destination",
    "ObjectMetadata",
    # Progress
    "TaskState",
    "UploadSnapshot",
    "UploadSummary",
]
