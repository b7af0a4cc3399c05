"""Object metadata as exchanged with the storage REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from .base import BaseModel

# Fields the client may set on upload; everything else is server-assigned
WRITABLE_FIELDS = (
    "cache_control",
    "content_disposition",
    "content_encoding",
    "content_language",
    "content_type",
    "custom_metadata",
)


class ObjectMetadata(BaseModel):
    """Metadata of a stored object.

    Before an upload finishes this holds the caller's requested metadata.
    After finalize it is replaced by what the server confirmed.
    """

    bucket: str | None = Field(None, description="Bucket holding the object")
    full_path: str | None = Field(None, alias="name", description="Object path in the bucket")
    generation: str | None = Field(None, description="Object generation")
    metageneration: str | None = Field(None, description="Metadata generation")
    size: int | None = Field(None, description="Object size in bytes")
    time_created: datetime | None = Field(None, alias="timeCreated")
    updated: datetime | None = Field(None, description="Last metadata update")
    md5_hash: str | None = Field(None, alias="md5Hash")
    cache_control: str | None = Field(None, alias="cacheControl")
    content_disposition: str | None = Field(None, alias="contentDisposition")
    content_encoding: str | None = Field(None, alias="contentEncoding")
    content_language: str | None = Field(None, alias="contentLanguage")
    content_type: str | None = Field(None, alias="contentType")
    custom_metadata: dict[str, str] | None = Field(None, alias="metadata")
    download_tokens: str | None = Field(None, alias="downloadTokens")

    @property
    def name(self) -> str | None:
        """Last segment of the object path."""
        if not self.full_path:
            return None
        return self.full_path.rsplit("/", 1)[-1]

    def to_upload_dict(self, full_path: str | None = None) -> dict[str, Any]:
        """Serialize the writable fields using wire names.

        Args:
            full_path: Object path to include as ``name``.
        """
        data = self.to_api_dict(include=set(WRITABLE_FIELDS))
        if full_path is not None:
            data["name"] = full_path
        return data

    def with_defaults(self, **values: Any) -> ObjectMetadata:
        """Return a copy with unset fields filled from ``values``."""
        missing = {k: v for k, v in values.items() if getattr(self, k) is None}
        if not missing:
            return self
        return self.model_copy(update=missing)
