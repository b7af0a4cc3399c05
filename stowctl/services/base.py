"""Base service with common helpers for storage services."""

from __future__ import annotations

from typing import TYPE_CHECKING

from stowctl.models.destination import Destination

if TYPE_CHECKING:
    from stowctl.core.client import StorageClient

API_PREFIX = "/v0"


class BaseService:
    """Base service class with common functionality."""

    def __init__(self, client: "StorageClient", api_prefix: str = API_PREFIX) -> None:
        """Initialize service with a storage client.

        Args:
            client: StorageClient instance
            api_prefix: REST API version prefix
        """
        self.client = client
        self.api_prefix = api_prefix

    def _build_path(self, *parts: str) -> str:
        """Build API path from parts.

        Args:
            *parts: Path segments

        Returns:
            Joined path string
        """
        return "/" + "/".join(p.strip("/") for p in parts if p)

    def _bucket_path(self, destination: Destination) -> str:
        """Collection path for objects in the destination bucket."""
        return self._build_path(self.api_prefix, "b", destination.bucket, "o")

    def _object_path(self, destination: Destination) -> str:
        """Path of a single object, with the object name URL-encoded."""
        return self._build_path(self._bucket_path(destination), destination.encoded_path)
