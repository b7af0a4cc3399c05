"""stowctl - resumable uploads to object storage.

This package provides an upload engine and a command-line interface for
sending large files to a storage bucket over unreliable networks:
- Resumable sessions with adaptive chunk sizes
- Pause, resume and cancel at any time
- Live progress events and a single completion future
"""

__version__ = "0.1.0"

from stowctl.core.client import StorageClient
from stowctl.core.config import Config, Profile
from stowctl.core.exceptions import (
    AuthFailure,
    ConfigurationError,
    StowCtlError,
    TransportFailure,
    UploadCanceledError,
    ValidationError,
)
from stowctl.models.destination import Destination
from stowctl.models.metadata import ObjectMetadata
from stowctl.models.progress import TaskState, UploadSnapshot
from stowctl.services.uploads import UploadService
from stowctl.uploaders.task import UploadTask

__all__ = [
    "__version__",
    "StorageClient",
    "Config",
    "Profile",
    "Destination",
    "ObjectMetadata",
    "TaskState",
    "UploadSnapshot",
    "UploadService",
    "UploadTask",
    "StowCtlError",
    "AuthFailure",
    "ConfigurationError",
    "TransportFailure",
    "UploadCanceledError",
    "ValidationError",
]
