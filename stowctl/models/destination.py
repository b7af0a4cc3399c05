"""Upload destination: a bucket and an object path."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote

from stowctl.core.exceptions import InvalidDestinationError
from stowctl.core.validation import validate_bucket, validate_object_path

GS_SCHEME = "gs://"


@dataclass(frozen=True)
class Destination:
    """Where an object is written."""

    bucket: str
    path: str

    def __post_init__(self) -> None:
        validate_bucket(self.bucket)
        object.__setattr__(self, "path", validate_object_path(self.path))

    @classmethod
    def from_url(cls, url: str, default_bucket: str | None = None) -> Destination:
        """Parse ``gs://bucket/path``, or a bare path when a default bucket is given.

        Raises:
            InvalidDestinationError: If no bucket can be determined.
        """
        if url.startswith(GS_SCHEME):
            bucket, _, path = url[len(GS_SCHEME):].partition("/")
            return cls(bucket, path)
        if default_bucket is None:
            raise InvalidDestinationError(url, "expected gs://<bucket>/<path> or a default bucket")
        return cls(default_bucket, url)

    @property
    def full_path(self) -> str:
        return self.path

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def gs_url(self) -> str:
        return f"{GS_SCHEME}{self.bucket}/{self.path}"

    @property
    def encoded_path(self) -> str:
        """Object path with every reserved character percent-encoded."""
        return quote(self.path, safe="")

    def __str__(self) -> str:
        return self.gs_url
