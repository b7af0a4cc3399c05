"""Input validation for stowctl.

Validators return the normalized value or raise a ValidationError subclass.
"""

from __future__ import annotations

import re
from typing import Any
from urllib.parse import urlparse

from stowctl.core.exceptions import (
    InvalidChunkSizeError,
    InvalidDestinationError,
    InvalidURLError,
    ValidationError,
)

# =============================================================================
# Constants
# =============================================================================

# Bucket names: lowercase letters, digits, dashes, underscores and dots
BUCKET_PATTERN = re.compile(r"^[a-z0-9][a-z0-9._-]{1,220}[a-z0-9]$")

# Object names are limited to 1024 bytes of UTF-8
MAX_OBJECT_PATH_BYTES = 1024

# Resumable chunks must be sent in multiples of this many bytes
CHUNK_GRANULARITY = 256 * 1024


def validate_server_url(url: str) -> str:
    """Validate and normalize a storage endpoint URL.

    Args:
        url: URL to validate.

    Returns:
        URL without trailing slash.

    Raises:
        InvalidURLError: If the URL is not http(s) with a host.
    """
    if not url or not isinstance(url, str):
        raise InvalidURLError(str(url), "URL is required")

    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise InvalidURLError(url, "scheme must be http or https")
    if not parsed.netloc:
        raise InvalidURLError(url, "missing host")

    return url.rstrip("/")


def validate_bucket(bucket: str) -> str:
    """Validate a bucket name.

    Raises:
        InvalidDestinationError: If the bucket name is malformed.
    """
    if not bucket or not BUCKET_PATTERN.match(bucket):
        raise InvalidDestinationError(str(bucket), "invalid bucket name")
    return bucket


def validate_object_path(path: str) -> str:
    """Validate and normalize an object path.

    Leading and trailing slashes are dropped and repeated slashes collapse.

    Raises:
        InvalidDestinationError: If the path is empty or too long.
    """
    normalized = "/".join(part for part in (path or "").split("/") if part)
    if not normalized:
        raise InvalidDestinationError(str(path), "object path cannot be the bucket root")
    if len(normalized.encode("utf-8")) > MAX_OBJECT_PATH_BYTES:
        raise InvalidDestinationError(path, f"longer than {MAX_OBJECT_PATH_BYTES} bytes")
    return normalized


def validate_chunk_size(chunk_size: Any) -> int:
    """Validate a resumable chunk size.

    Raises:
        InvalidChunkSizeError: If not a positive multiple of 256 KiB.
    """
    if (
        isinstance(chunk_size, bool)
        or not isinstance(chunk_size, int)
        or chunk_size <= 0
        or chunk_size % CHUNK_GRANULARITY
    ):
        raise InvalidChunkSizeError(chunk_size, CHUNK_GRANULARITY)
    return chunk_size


def validate_timeout(timeout: Any) -> int:
    """Validate a request timeout in seconds.

    Raises:
        ValidationError: If timeout is not a positive integer.
    """
    try:
        value = int(timeout)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid timeout: {timeout}", field="timeout", value=timeout)
    if value <= 0:
        raise ValidationError(
            f"Invalid timeout: {timeout} (must be positive)", field="timeout", value=timeout
        )
    return value
