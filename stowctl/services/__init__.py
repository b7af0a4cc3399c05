"""Service layer for stowctl.

Provides the HTTP transfer backend and the upload service that wires it to
the upload engine.
"""

from __future__ import annotations

from .base import BaseService
from .transfer import HttpTransferBackend
from .uploads import UploadService

__all__ = [
    "BaseService",
    "HttpTransferBackend",
    "UploadService",
]
