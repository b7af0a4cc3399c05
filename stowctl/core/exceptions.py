"""Exception hierarchy for stowctl.

Provides typed exceptions for different failure modes with clear error messages.
"""

from __future__ import annotations

from typing import Any


class StowCtlError(Exception):
    """Base exception for all stowctl errors."""

    code = "unknown"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(StowCtlError):
    """Error in configuration (missing, invalid, or malformed)."""

    code = "configuration"

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any = None,
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = repr(value)
        super().__init__(message, details)
        self.field = field
        self.value = value


class ProfileNotFoundError(ConfigurationError):
    """Requested profile does not exist."""

    def __init__(self, profile: str):
        super().__init__(f"Profile not found: {profile}", field="profile", value=profile)
        self.profile = profile


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(StowCtlError):
    """Input validation failed."""

    code = "invalid-argument"

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any = None,
    ):
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = repr(value)
        super().__init__(message, details)
        self.field = field
        self.value = value


class InvalidURLError(ValidationError):
    """Invalid URL format."""

    def __init__(self, url: str, reason: str = ""):
        msg = f"Invalid URL: {url}"
        if reason:
            msg = f"{msg} - {reason}"
        super().__init__(msg, field="url", value=url)
        self.url = url
        self.reason = reason


class InvalidDestinationError(ValidationError):
    """Destination bucket or object path is malformed."""

    def __init__(self, destination: str, reason: str = ""):
        msg = f"Invalid destination: {destination}"
        if reason:
            msg = f"{msg} - {reason}"
        super().__init__(msg, field="destination", value=destination)
        self.destination = destination
        self.reason = reason


class InvalidChunkSizeError(ValidationError):
    """Chunk size is not a positive multiple of the protocol granularity."""

    def __init__(self, chunk_size: Any, granularity: int):
        super().__init__(
            f"Invalid chunk size: {chunk_size} (must be a positive multiple of {granularity})",
            field="chunk_size",
            value=chunk_size,
        )
        self.chunk_size = chunk_size
        self.granularity = granularity


# =============================================================================
# Upload Outcome Errors
# =============================================================================


class UploadCanceledError(StowCtlError):
    """The user canceled the upload.

    Reported through the same channels as failures so callers see exactly
    one outcome, but carries ``code == "canceled"`` so it can be told apart.
    """

    code = "canceled"

    def __init__(
        self,
        message: str = "User canceled the upload.",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)

    @property
    def is_canceled(self) -> bool:
        return True


class CallCanceledError(StowCtlError):
    """A single backend call was interrupted before it completed."""

    code = "call-canceled"

    def __init__(self, operation: str = "request"):
        super().__init__(f"Call canceled: {operation}", {"operation": operation})
        self.operation = operation


# =============================================================================
# Transport Errors
# =============================================================================


class TransportFailure(StowCtlError):
    """A network step failed for a reason other than cancellation."""

    code = "transport"

    def __init__(
        self,
        message: str,
        url: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        full_details: dict[str, Any] = {"url": url} if url else {}
        if details:
            full_details.update(details)
        super().__init__(message, full_details)
        self.url = url


class NetworkError(TransportFailure):
    """Network-level error (DNS, TCP, TLS, timeout)."""

    def __init__(self, url: str, cause: str | None = None):
        msg = f"Network error connecting to {url}"
        if cause:
            msg = f"{msg}: {cause}"
        super().__init__(msg, url)
        self.cause = cause


class ServerUnreachableError(TransportFailure):
    """Server is not reachable."""

    def __init__(self, url: str):
        super().__init__(f"Server unreachable: {url}", url)


class ServerResponseError(TransportFailure):
    """Server answered with a status or headers the protocol does not allow."""

    def __init__(self, url: str, status_code: int, reason: str = ""):
        msg = f"Unexpected response HTTP {status_code}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg, url, {"status_code": status_code})
        self.status_code = status_code
        self.reason = reason


class ObjectNotFoundError(TransportFailure):
    """Requested object does not exist."""

    code = "object-not-found"

    def __init__(self, path: str):
        super().__init__(f"Object not found: {path}", details={"path": path})
        self.path = path


class RetryExhaustedError(TransportFailure):
    """All retry attempts failed."""

    code = "retry-limit-exceeded"

    def __init__(self, operation: str, attempts: int, last_error: Exception | None = None):
        msg = f"Operation '{operation}' failed after {attempts} attempts"
        if last_error:
            msg = f"{msg}: {last_error}"
        super().__init__(msg)
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error


# =============================================================================
# Authentication Errors
# =============================================================================


class AuthFailure(TransportFailure):
    """Token resolution failed or the backend rejected the credentials."""

    code = "unauthenticated"

    def __init__(self, url: str | None = None, reason: str = ""):
        msg = "Authentication failed"
        if url:
            msg = f"{msg} for {url}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg, url)
        self.reason = reason


class AuthenticationError(AuthFailure):
    """Backend rejected the request as unauthenticated (HTTP 401)."""


class PermissionDeniedError(AuthFailure):
    """Caller lacks permission for the requested object (HTTP 403)."""

    code = "unauthorized"

    def __init__(self, resource: str, operation: str = "write"):
        super().__init__(reason=f"Permission denied to {operation} {resource}")
        self.resource = resource
        self.operation = operation
